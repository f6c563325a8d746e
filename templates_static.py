"""Templates for the HTML index page."""

from jinja2 import DictLoader, Environment, select_autoescape

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Gallery' }}</title>
  <style>{{ css | safe }}</style>
</head>
<body>
  <header class="topbar">
    <nav>
      <a href="/" class="brand">Gallery</a>
      <a href="/folders/roots">Roots</a>
      <a href="/tags">Tags</a>
    </nav>
  </header>
  <main class="container">
    {% if msg %}<div class="flash">{{ msg }}</div>{% endif %}
    {% block content %}{% endblock %}
  </main>
</body>
</html>
"""

INDEX_HTML = """{% extends 'base.html' %}
{% block content %}
<section class="status">
  <p>
    Indexing: <strong>{{ 'running' if status.running else 'idle' }}</strong>
    {% if status.last_indexed %}&middot; last completed {{ status.last_indexed | datetime }}{% endif %}
    &middot; {{ total }} images
  </p>
  <a class="button-link" href="/task/index">Index new files</a>
  <a class="button-link" href="/task/index?force=true">Re-index everything</a>
  <a class="button-link" href="/task/cancel">Cancel</a>
  {% if roots %}
  <p class="muted">
    Indexed roots:
    {% for root in roots %}<a href="/folders/json?root={{ root | urlencode }}">{{ root }}</a>{% if not loop.last %}, {% endif %}{% endfor %}
  </p>
  {% endif %}
</section>

<section class="settings">
  <form method="post" action="/config">
    <label for="images_dirs">Image folders (one per line)</label>
    <textarea id="images_dirs" name="images_dirs" rows="3">{{ images_dirs | join('\\n') }}</textarea>
    <button>Save</button>
  </form>
</section>

<section class="grid">
  {% for folder in folders %}
  <figure class="card">
    <img loading="lazy" src="/files/thumbnail/folder/download?folder={{ folder.folder_name | urlencode }}&width=300&height=300" alt="{{ folder.folder_name }}">
    <figcaption>{{ folder.folder_name }} <span class="muted">({{ folder.count }})</span></figcaption>
  </figure>
  {% else %}
  <p class="muted">No images indexed yet.</p>
  {% endfor %}
</section>
{% endblock %}
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--brand:#7aa2ff}
body{margin:0;background:var(--bg);color:var(--fg);font:14px/1.4 system-ui,sans-serif}
.topbar nav{display:flex;gap:16px;padding:12px 20px;border-bottom:1px solid #1f2430}.topbar a{color:var(--fg);text-decoration:none}.brand{font-weight:700;color:var(--brand)!important}
.container{padding:20px}.muted{color:var(--muted)}.flash{background:#0f2e1e;border:1px solid #10b981;color:#34d399;padding:8px 12px;border-radius:6px;margin-bottom:16px}
.button-link{display:inline-block;background:#374151;color:white;padding:6px 12px;border-radius:6px;text-decoration:none}.button-link:hover{background:#4b5563}
.settings form{display:flex;flex-direction:column;gap:6px;max-width:520px;margin:16px 0}textarea{background:var(--card);color:var(--fg);border:1px solid #1f2430;border-radius:6px;padding:6px}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(180px,1fr));gap:12px}.card{margin:0;background:var(--card);border:1px solid #1f2430;border-radius:8px;overflow:hidden}
.card img{width:100%;height:180px;object-fit:cover;display:block}.card figcaption{padding:8px;white-space:nowrap;overflow:hidden;text-overflow:ellipsis}
"""

TEMPLATES = {
    "base.html": BASE_HTML,
    "index.html": INDEX_HTML,
}


def build_environment() -> Environment:
    """Jinja environment serving the in-module templates."""
    env = Environment(
        loader=DictLoader(TEMPLATES),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.globals["css"] = APP_CSS
    return env
