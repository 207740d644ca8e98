"""
Browse page output.

Writes results as JSON or as a self-contained HTML page that filters
the embedded data client-side.
"""

import html
import json
from pathlib import Path
from string import Template
from typing import Sequence, Union

from loguru import logger

from shelftag.models import BrowseResult


PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$heading</title>
<style>
body { background: #0a0a0a; color: #b0b0b0; font-family: monospace; font-size: 13px; padding: 20px; }
a { color: #5faf5f; }
table { width: 100%; border-collapse: collapse; }
th { text-align: left; color: #666; border-bottom: 1px solid #333; padding: 6px 10px; }
td { padding: 4px 10px; border-bottom: 1px solid #1a1a1a; vertical-align: top; }
.filters { display: flex; gap: 12px; margin-bottom: 16px; }
.avail { color: #5faf5f; } .wait { color: #d7af5f; } .kindle { color: #d75f5f; }
</style>
</head>
<body>
<h1>$heading</h1>
<p><span id="shown">$total</span> of $total books shown &middot; $available available now</p>
<div class="filters">
  <input type="text" id="search" placeholder="title or author...">
  <input type="number" id="min-pages" placeholder="min pages">
  <input type="number" id="max-pages" placeholder="max pages">
  <label><input type="checkbox" id="avail-only"> available only</label>
  <label><input type="checkbox" id="kindle-only"> kindle only</label>
</div>
<table>
<thead><tr><th>title</th><th>author</th><th>pages</th><th>rating</th><th>shelves</th><th>status</th><th>link</th></tr></thead>
<tbody id="rows"></tbody>
</table>
<script>
const DATA = $data;
const esc = s => String(s).replace(/[&<>"]/g, c => ({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}[c]));
function render() {
  const q = document.getElementById("search").value.toLowerCase();
  const minP = parseInt(document.getElementById("min-pages").value) || 0;
  const maxP = parseInt(document.getElementById("max-pages").value) || Infinity;
  const availOnly = document.getElementById("avail-only").checked;
  const kindleOnly = document.getElementById("kindle-only").checked;
  const rows = DATA.filter(b => {
    if (q && !b.title.toLowerCase().includes(q) && !b.author.toLowerCase().includes(q)) return false;
    if (b.pages != null && (b.pages < minP || b.pages > maxP)) return false;
    if (availOnly && !b.is_available) return false;
    if (kindleOnly && b.has_kindle !== true) return false;
    return true;
  });
  document.getElementById("shown").textContent = rows.length;
  document.getElementById("rows").innerHTML = rows.map(b => {
    let status = b.is_available ? '<span class="avail">available</span>'
      : (b.estimated_wait_days != null ? `<span class="wait">~$${b.estimated_wait_days}d wait</span>` : "waitlist");
    if (b.has_kindle === true) status += ' <span class="kindle">kindle</span>';
    return `<tr><td>$${esc(b.title)}</td><td>$${esc(b.author)}</td><td>$${b.pages ?? "-"}</td>`
      + `<td>$${b.average_rating != null ? b.average_rating.toFixed(2) : "-"}</td>`
      + `<td>$${b.goodreads_shelves.map(esc).join(", ")}</td><td>$${status}</td>`
      + `<td><a href="https://www.goodreads.com/book/show/$${b.goodreads_id}" target="_blank">open</a></td></tr>`;
  }).join("");
}
["search", "min-pages", "max-pages"].forEach(id => document.getElementById(id).addEventListener("input", render));
["avail-only", "kindle-only"].forEach(id => document.getElementById(id).addEventListener("change", render));
render();
</script>
</body>
</html>
""")


def to_json(results: Sequence[BrowseResult]) -> str:
    return json.dumps([r.to_dict() for r in results], ensure_ascii=False)


def render_html(results: Sequence[BrowseResult], heading: str = "browse // libby ebooks") -> str:
    """Render the browse page with the results embedded as JSON."""
    data = to_json(results).replace("</", "<\\/")
    return PAGE_TEMPLATE.substitute(
        heading=html.escape(heading),
        total=len(results),
        available=sum(1 for r in results if r.is_available),
        data=data,
    )


def write_html(
    results: Sequence[BrowseResult],
    path: Union[str, Path],
    heading: str = "browse // libby ebooks",
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_html(results, heading=heading), encoding="utf-8")
    logger.info(f"Wrote {len(results)} books to {path}")
    return path


def write_json(results: Sequence[BrowseResult], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Wrote {len(results)} books to {path}")
    return path
