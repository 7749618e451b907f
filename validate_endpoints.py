"""Check that every ``url_for('blueprint.endpoint')`` in the templates resolves."""

import re
from pathlib import Path

from flask import Flask

from edu_hub.app import create_app

TEMPLATES = Path(__file__).resolve().parent / "templates"
URL_FOR = re.compile(r"url_for\(\s*['\"]([a-z_]+\.[a-z_]+)['\"]")


def template_endpoints(root: Path = TEMPLATES) -> dict[str, set[str]]:
    """Map each referenced endpoint to the templates that reference it."""
    refs: dict[str, set[str]] = {}
    for path in sorted(root.rglob("*.html")):
        text = path.read_text(encoding="utf-8", errors="ignore")
        for endpoint in URL_FOR.findall(text):
            refs.setdefault(endpoint, set()).add(path.relative_to(root).as_posix())
    return refs


def missing_endpoints(app: Flask, root: Path = TEMPLATES) -> dict[str, set[str]]:
    registered = {rule.endpoint for rule in app.url_map.iter_rules()}
    return {ep: files for ep, files in template_endpoints(root).items() if ep not in registered}


def main() -> int:
    app = create_app()
    missing = missing_endpoints(app)

    print(f"Endpoints referenced in templates: {len(template_endpoints())}")
    if not missing:
        print("All template endpoints are registered.")
        return 0

    print(f"Missing endpoints: {len(missing)}")
    for ep in sorted(missing):
        print(f"- {ep} <= {', '.join(sorted(missing[ep]))}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
