from __future__ import annotations
from jinja2 import Environment, FileSystemLoader, select_autoescape


class DialogRenderer:
    def __init__(self, templates_dir: str):
        self.env = Environment(
            loader=FileSystemLoader(templates_dir),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.tpl = self.env.get_template("qr_dialog.html.j2")

    def render_dialog_html(self, title: str, body: str) -> str:
        return self.tpl.render(title=title, body=body).strip()
