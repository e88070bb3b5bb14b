import os

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from app.config import settings

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")

env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)


def render_template(template_path: str, **context) -> str:
    # Every email knows the store name and where the frontend lives
    context.setdefault("store_name", settings.STORE_NAME)
    context.setdefault("frontend_url", settings.FRONTEND_URL.rstrip("/"))
    return env.get_template(template_path).render(**context)
