"""
HTML pages for the diagram viewer.

Pure functions from diagram data to markup. Mermaid rendering, markdown and
syntax highlighting all happen in the browser via CDN scripts.
"""

from __future__ import annotations

import html as _html
import json
from string import Template

from traverse_mcp.models import WalkthroughDiagram


def escape_html(text: str) -> str:
    return _html.escape(text, quote=True)


def _script_json(data: object) -> str:
    """JSON that is safe to inline inside a <script> element."""
    return (
        json.dumps(data)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


_BASE_CSS = """
    *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
    :root {
      --bg: #fafafa; --bg-panel: #ffffff; --border: #e2e2e2;
      --text: #1a1a1a; --text-muted: #666; --accent: #2563eb;
      --code-bg: #f4f4f5; --summary-bg: #f0f4ff; --danger: #dc2626;
    }
    @media (prefers-color-scheme: dark) {
      :root {
        --bg: #0a0a0a; --bg-panel: #141414; --border: #262626;
        --text: #e5e5e5; --text-muted: #a3a3a3; --accent: #3b82f6;
        --code-bg: #1c1c1e; --summary-bg: #111827; --danger: #f87171;
      }
    }
    body {
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
      background: var(--bg); color: var(--text);
    }
    a { color: var(--accent); }
    button {
      font: inherit; font-size: 13px; padding: 4px 10px; border-radius: 6px;
      border: 1px solid var(--border); background: var(--bg-panel);
      color: var(--text); cursor: pointer;
    }
"""

_VIEWER_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>Traverse - $title</title>
  <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/highlight.js@11/styles/github-dark.min.css" id="hljs-dark" disabled />
  <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/highlight.js@11/styles/github.min.css" id="hljs-light" />
  <script src="https://cdn.jsdelivr.net/gh/highlightjs/cdn-release@11/build/highlight.min.js"></script>
  <script src="https://cdn.jsdelivr.net/npm/marked@15/marked.min.js"></script>
  <style>
$base_css
    body { height: 100vh; display: flex; flex-direction: column; overflow: hidden; }
    .summary-bar {
      padding: 12px 20px; background: var(--summary-bg);
      border-bottom: 1px solid var(--border); font-size: 14px;
      color: var(--text-muted); display: flex; align-items: center; gap: 8px;
    }
    .summary-bar .label {
      font-weight: 600; color: var(--accent); text-transform: uppercase;
      font-size: 11px; letter-spacing: 0.05em;
    }
    .summary-bar .spacer { flex: 1; }
    .main { display: flex; flex: 1; overflow: hidden; }
    .diagram-container {
      flex: 1; overflow: auto; display: flex; align-items: center;
      justify-content: center; padding: 32px; min-width: 0;
    }
    .diagram-container pre.mermaid, .diagram-container svg { width: 100%; }
    .diagram-container .node { cursor: pointer; }
    .node.selected rect, .node.selected polygon, .node.selected circle {
      stroke: var(--accent) !important; stroke-width: 2.5px !important;
    }
    .detail-panel {
      width: 420px; flex-shrink: 0; border-left: 1px solid var(--border);
      background: var(--bg-panel); display: none; flex-direction: column; overflow: hidden;
    }
    .detail-panel.open { display: flex; }
    .detail-header {
      display: flex; align-items: center; justify-content: space-between;
      padding: 16px 20px; border-bottom: 1px solid var(--border);
    }
    .detail-header h2 { font-size: 16px; }
    .detail-body { padding: 20px; overflow-y: auto; font-size: 14px; line-height: 1.6; }
    .detail-body p, .detail-body ul { margin-bottom: 12px; }
    .detail-body code { background: var(--code-bg); border-radius: 4px; padding: 1px 4px; }
    .section-label {
      margin-top: 20px; font-size: 11px; font-weight: 600;
      text-transform: uppercase; color: var(--text-muted);
    }
    .links-list { list-style: none; }
    .links-list a { font-family: "SF Mono", "Fira Code", monospace; font-size: 13px; }
    .code-snippet pre {
      background: var(--code-bg); border-radius: 6px; padding: 12px;
      overflow-x: auto; font-size: 13px; margin-top: 8px;
    }
    .empty-hint { color: var(--text-muted); text-align: center; padding: 40px 20px; }
    @media (max-width: 1300px) {
      .main { flex-direction: column; }
      .detail-panel { width: 100%; border-left: none; border-top: 1px solid var(--border); max-height: 50vh; }
    }
  </style>
</head>
<body>
  <div class="summary-bar">
    <span class="label">Traverse</span>
    <span>$summary</span>
    <span class="spacer"></span>
    $share_controls
  </div>
  <div class="main">
    <div class="diagram-container">
      <pre class="mermaid">$code</pre>
    </div>
    <div class="detail-panel" id="detail-panel">
      <div class="detail-header">
        <h2 id="detail-title">Select a node</h2>
        <button id="close-btn" aria-label="Close panel">&times;</button>
      </div>
      <div class="detail-body" id="detail-body">
        <div class="empty-hint">Click a node in the diagram to view details.</div>
      </div>
    </div>
  </div>
  <script type="module">
    import mermaid from "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.esm.min.mjs";

    const DIAGRAM_ID = $diagram_id;
    const DIAGRAM_DATA = $diagram_json;
    const SHARE_SERVER = $share_server;

    function dark() { return window.matchMedia("(prefers-color-scheme: dark)").matches; }
    function initTheme() {
      document.getElementById("hljs-dark").disabled = !dark();
      document.getElementById("hljs-light").disabled = dark();
    }
    initTheme();

    function escapeText(s) {
      const d = document.createElement("div");
      d.textContent = s;
      return d.innerHTML;
    }

    function safeHref(url) {
      return /^(https?:|file:|vscode:|\\/)/i.test(url) ? escapeText(url) : "#";
    }

    let selectedEl = null;

    function selectNode(nodeId, el) {
      const meta = DIAGRAM_DATA.nodes[nodeId];
      if (!meta) return;
      if (selectedEl) selectedEl.classList.remove("selected");
      el.classList.add("selected");
      selectedEl = el;
      document.getElementById("detail-title").textContent = meta.title;
      let html = '<div class="description">' + marked.parse(meta.description) + "</div>";
      if (meta.links && meta.links.length > 0) {
        html += '<div class="section-label">Related Files</div><ul class="links-list">';
        meta.links.forEach(link => {
          html += '<li><a href="' + safeHref(link.url) + '">' + escapeText(link.label) + "</a></li>";
        });
        html += "</ul>";
      }
      if (meta.codeSnippet) {
        html += '<div class="section-label">Code</div>';
        html += '<div class="code-snippet"><pre><code>' + escapeText(meta.codeSnippet) + "</code></pre></div>";
      }
      const body = document.getElementById("detail-body");
      body.innerHTML = html;
      body.querySelectorAll("pre code").forEach(block => hljs.highlightElement(block));
      document.getElementById("detail-panel").classList.add("open");
    }

    function deselectAll() {
      if (selectedEl) selectedEl.classList.remove("selected");
      selectedEl = null;
      document.getElementById("detail-panel").classList.remove("open");
    }

    // Mermaid renders flowchart nodes with ids of the form "flowchart-<key>-<n>".
    function nodeKeyFor(el) {
      const m = /^flowchart-(.+)-\\d+$$/.exec(el.id || "");
      return m && Object.prototype.hasOwnProperty.call(DIAGRAM_DATA.nodes, m[1]) ? m[1] : null;
    }

    function attachClickHandlers() {
      document.querySelectorAll(".diagram-container svg .node").forEach(el => {
        const key = nodeKeyFor(el);
        if (!key) return;
        el.addEventListener("click", e => { e.stopPropagation(); selectNode(key, el); });
      });
      document.addEventListener("click", e => {
        if (!e.target.closest(".detail-panel") && !e.target.closest(".node")) deselectAll();
      });
    }

    function fitDiagram() {
      const svg = document.querySelector(".diagram-container svg");
      if (!svg) return;
      const box = svg.getBBox();
      const pad = 20;
      svg.setAttribute("viewBox", [box.x - pad, box.y - pad, box.width + pad * 2, box.height + pad * 2].join(" "));
      svg.removeAttribute("width");
      svg.removeAttribute("height");
    }

    async function share() {
      const btn = document.getElementById("share-btn");
      const status = document.getElementById("share-status");
      btn.disabled = true;
      try {
        const known = await fetch("/api/diagrams/" + DIAGRAM_ID + "/shared-url").then(r => r.json());
        let url = known.url;
        if (!url) {
          const res = await fetch(SHARE_SERVER + "/api/diagrams", {
            method: "POST",
            headers: { "Content-Type": "application/json" },
            body: JSON.stringify({ code: DIAGRAM_DATA.code, summary: DIAGRAM_DATA.summary, nodes: DIAGRAM_DATA.nodes }),
          });
          if (!res.ok) throw new Error(res.status + " " + res.statusText);
          url = (await res.json()).url;
          await fetch("/api/diagrams/" + DIAGRAM_ID + "/shared-url", {
            method: "POST",
            headers: { "Content-Type": "application/json" },
            body: JSON.stringify({ url: url }),
          });
        }
        status.innerHTML = '<a href="' + escapeText(url) + '" target="_blank">' + escapeText(url) + "</a>";
        if (navigator.clipboard) navigator.clipboard.writeText(url).catch(() => {});
      } catch (err) {
        status.textContent = "Share failed: " + err.message;
      } finally {
        btn.disabled = false;
      }
    }

    document.getElementById("close-btn").addEventListener("click", deselectAll);
    const shareBtn = document.getElementById("share-btn");
    if (shareBtn) shareBtn.addEventListener("click", share);

    mermaid.initialize({
      startOnLoad: false,
      theme: dark() ? "dark" : "default",
      flowchart: { useMaxWidth: false, htmlLabels: true, curve: "basis" },
      securityLevel: "strict",
    });
    await mermaid.run();
    requestAnimationFrame(() => { fitDiagram(); attachClickHandlers(); });
    window.addEventListener("resize", fitDiagram);
  </script>
</body>
</html>
""")

_SHARE_CONTROLS = (
    '<span id="share-status"></span>\n'
    '    <button id="share-btn" title="Publish to the share server">Share</button>'
)


def render_viewer_html(
    diagram_id: str,
    diagram: WalkthroughDiagram,
    *,
    share_server: str | None = None,
) -> str:
    """Full viewer page. A Share button is shown only when *share_server* is set."""
    return _VIEWER_PAGE.substitute(
        title=escape_html(diagram.summary),
        summary=escape_html(diagram.summary),
        code=escape_html(diagram.code),
        base_css=_BASE_CSS,
        share_controls=_SHARE_CONTROLS if share_server else "",
        diagram_id=_script_json(diagram_id),
        diagram_json=_script_json(diagram.to_dict()),
        share_server=_script_json(share_server or ""),
    )


_SIMPLE_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>$title</title>
  <style>
$base_css
    body { padding: 40px; max-width: 860px; margin: 0 auto; }
    h2 { margin-bottom: 16px; }
    p { color: var(--text-muted); margin-bottom: 12px; }
    ul { list-style: none; }
    li {
      display: flex; align-items: center; gap: 12px;
      padding: 10px 0; border-bottom: 1px solid var(--border);
    }
    li a { flex: 1; text-decoration: none; }
    li time { color: var(--text-muted); font-size: 12px; }
    li button:hover { color: var(--danger); border-color: var(--danger); }
  </style>
</head>
<body>
$body
</body>
</html>
""")

_DELETE_SCRIPT = """<script>
  document.querySelectorAll("button[data-delete]").forEach(btn => {
    btn.addEventListener("click", async () => {
      if (!confirm("Delete this diagram?")) return;
      const id = btn.dataset.delete;
      const res = await fetch("/api/diagrams/" + encodeURIComponent(id), { method: "DELETE" });
      if (res.ok) btn.closest("li").remove();
    });
  });
</script>"""


def _page(title: str, body: str) -> str:
    return _SIMPLE_PAGE.substitute(title=escape_html(title), base_css=_BASE_CSS, body=body)


def render_index_html(
    diagrams: list[tuple[str, WalkthroughDiagram]],
    *,
    server_mode: bool = False,
) -> str:
    """Landing page: a manageable list locally, an aggregate count when hosted."""
    if server_mode:
        n = len(diagrams)
        body = (
            "<h2>Traverse</h2>\n"
            "<p>Interactive code walkthrough diagrams, shareable with anyone.</p>\n"
            f"<p>{n} diagram{'s' if n != 1 else ''} shared</p>"
        )
        return _page("Traverse", body)

    if not diagrams:
        body = "<h2>Traverse</h2>\n<p>No diagrams yet. Use the MCP tool to create one.</p>"
        return _page("Traverse", body)

    items = "\n".join(
        f'  <li><a href="/diagram/{escape_html(diagram_id)}">{escape_html(d.summary)}</a>'
        f'<time>{escape_html(d.created_at)}</time>'
        f'<button data-delete="{escape_html(diagram_id)}">Delete</button></li>'
        for diagram_id, d in reversed(diagrams)
    )
    body = f"<h2>Traverse</h2>\n<ul>\n{items}\n</ul>\n{_DELETE_SCRIPT}"
    return _page("Traverse", body)


def render_not_found_html(diagram_id: str | None = None) -> str:
    if diagram_id:
        message = f"No diagram with id <code>{escape_html(diagram_id)}</code>."
    else:
        message = "There is nothing at this address."
    body = (
        "<h2>Diagram not found</h2>\n"
        f"<p>{message} It may have been deleted.</p>\n"
        '<p><a href="/">Back to all diagrams</a></p>'
    )
    return _page("Traverse - not found", body)


def render_error_html(message: str) -> str:
    body = f"<h2>Something went wrong</h2>\n<p>{escape_html(message)}</p>"
    return _page("Traverse - error", body)
