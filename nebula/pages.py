import html

from .models import LinkTree

_HEAD = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>Nebula</title>
  <style>
    :root { color-scheme: light dark; --muted: #888; --border: #8884; }
    body { font-family: system-ui, sans-serif; margin: 0; padding: 24px; }
    .box { max-width: 360px; margin: 10vh auto; display: flex; flex-direction: column; gap: 10px; }
    input, button, select { padding: 10px; border-radius: 10px; border: 1px solid var(--border); font: inherit; }
    .section { margin-bottom: 28px; }
    .section h2 { display: flex; gap: 8px; align-items: center; }
    .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(180px, 1fr)); gap: 10px; min-height: 48px; }
    .card { display: flex; gap: 10px; align-items: center; padding: 10px; border: 1px solid var(--border);
            border-radius: 12px; text-decoration: none; color: inherit; }
    .card img { width: 24px; height: 24px; }
    .card .url { color: var(--muted); font-size: .8rem; }
    .mini { cursor: pointer; color: var(--muted); margin-left: auto; }
    .dragging { opacity: .4; }
    [hidden] { display: none !important; }
    #toast { position: fixed; bottom: 16px; left: 50%; transform: translateX(-50%); display: none;
             padding: 8px 14px; border-radius: 10px; background: #333; color: #fff; }
  </style>
</head>
"""


def render_login_page() -> str:
    return _HEAD + """<body>
  <form class="box" method="post" action="/login">
    <h1>Nebula</h1>
    <input name="user" placeholder="Username" autocomplete="username" required/>
    <input name="pass" type="password" placeholder="Password" autocomplete="current-password" required/>
    <button type="submit">Log in</button>
  </form>
</body>
</html>"""


def render_change_password_page() -> str:
    return _HEAD + """<body>
  <form class="box" id="form">
    <h1>Change password</h1>
    <p>The factory password is still in use. Choose a new one (at least 8 characters).</p>
    <input id="oldPass" type="password" placeholder="Current password" required/>
    <input id="newPass" type="password" placeholder="New password" minlength="8" required/>
    <button type="submit">Save</button>
    <a href="/logout">Log out</a>
    <p id="msg"></p>
  </form>
  <script>
    document.getElementById("form").onsubmit = async function (e) {
      e.preventDefault();
      var res = await fetch("/api/change-password", {
        method: "POST", headers: {"content-type": "application/json"},
        body: JSON.stringify({oldPass: oldPass.value, newPass: newPass.value})
      });
      var out = await res.json();
      if (res.ok) { location.href = "/"; } else { msg.textContent = out.error || "failed"; }
    };
  </script>
</body>
</html>"""


def _render_category(category) -> str:
    cid = html.escape(category.id, quote=True)
    cards = []
    for link in category.links:
        lid = html.escape(link.id, quote=True)
        cards.append(
            f'<a class="card" href="{html.escape(link.url, quote=True)}" target="_blank" rel="noopener" '
            f'draggable="true" data-link-id="{lid}" data-cat-id="{cid}">'
            f'<img src="{html.escape(link.icon, quote=True)}" alt=""/>'
            f'<div><div>{html.escape(link.title)}</div>'
            f'<div class="url">{html.escape(link.url)}</div></div>'
            f'<span class="mini" data-edit="{lid}" data-title="{html.escape(link.title, quote=True)}" '
            f'data-url="{html.escape(link.url, quote=True)}" data-icon="{html.escape(link.icon, quote=True)}">✎</span>'
            f'<span class="mini" data-del="{lid}">✕</span></a>'
        )
    return (
        f'<section class="section" draggable="true" data-section-cat="{cid}">'
        f'<h2><span>{html.escape(category.name)}</span>'
        f'<span class="mini" data-rename="{cid}">✎</span></h2>'
        f'<div class="grid" data-grid-cat="{cid}">{"".join(cards)}</div></section>'
    )


_DASHBOARD_SCRIPT = """
  <script>
    function toast(msg) {
      var t = document.getElementById("toast");
      t.textContent = msg; t.style.display = "block";
      setTimeout(function () { t.style.display = "none"; }, 1800);
    }
    async function call(method, path, body) {
      var res = await fetch(path, {method: method, headers: {"content-type": "application/json"},
                                   body: JSON.stringify(body)});
      var out = await res.json();
      if (!res.ok) { toast(out.error || "failed"); return false; }
      location.reload();
      return true;
    }
    function persistOrder() {
      var cats = [];
      document.querySelectorAll(".grid").forEach(function (grid) {
        var links = [];
        grid.querySelectorAll(".card").forEach(function (c) { links.push({id: c.dataset.linkId}); });
        cats.push({id: grid.dataset.gridCat, links: links});
      });
      return call("POST", "/api/reorder", {data: {categories: cats}});
    }
    var dragging = null;
    document.querySelectorAll(".card").forEach(function (card) {
      card.addEventListener("dragstart", function (e) {
        e.stopPropagation(); dragging = card; card.classList.add("dragging");
      });
      card.addEventListener("dragend", function (e) {
        e.stopPropagation(); card.classList.remove("dragging"); dragging = null;
      });
    });
    // whole categories are dragged by their section; the grids' order is what persistOrder sends
    var draggingSection = null;
    document.querySelectorAll(".section").forEach(function (section) {
      section.addEventListener("dragstart", function () {
        if (dragging) return;
        draggingSection = section; section.classList.add("dragging");
      });
      section.addEventListener("dragend", function () { section.classList.remove("dragging"); draggingSection = null; });
      section.addEventListener("dragover", function (e) { if (draggingSection) e.preventDefault(); });
      section.addEventListener("drop", function (e) {
        if (!draggingSection || draggingSection === section) return;
        e.preventDefault();
        var box = section.getBoundingClientRect();
        var after = e.clientY > box.top + box.height / 2;
        section.parentNode.insertBefore(draggingSection, after ? section.nextSibling : section);
        persistOrder();
      });
    });
    document.querySelectorAll(".grid").forEach(function (grid) {
      grid.addEventListener("dragover", function (e) { if (dragging) e.preventDefault(); });
      grid.addEventListener("drop", function (e) {
        if (!dragging) return;
        e.preventDefault();
        var before = e.target.closest(".card");
        if (before && before !== dragging && before.parentNode === grid) grid.insertBefore(dragging, before);
        else grid.appendChild(dragging);
        persistOrder();
      });
    });
    document.querySelectorAll("[data-del]").forEach(function (btn) {
      btn.addEventListener("click", function (e) {
        e.preventDefault(); e.stopPropagation();
        if (confirm("Delete this link?")) call("DELETE", "/api/links", {linkId: btn.dataset.del});
      });
    });
    document.querySelectorAll("[data-rename]").forEach(function (btn) {
      btn.addEventListener("click", function () {
        var name = prompt("New category name:");
        if (name) call("POST", "/api/categories/rename", {categoryId: btn.dataset.rename, newName: name.trim()});
      });
    });
    var edit = document.getElementById("edit");
    document.querySelectorAll("[data-edit]").forEach(function (btn) {
      btn.addEventListener("click", function (e) {
        e.preventDefault(); e.stopPropagation();
        edit.linkId.value = btn.dataset.edit;
        edit.editTitle.value = btn.dataset.title;
        edit.editUrl.value = btn.dataset.url;
        edit.editIcon.value = btn.dataset.icon;
        edit.moveToCategoryId.value = btn.closest(".card").dataset.catId;
        edit.hidden = false;
        edit.editTitle.focus();
      });
    });
    document.getElementById("edit-cancel").onclick = function () { edit.hidden = true; };
    edit.onsubmit = function (e) {
      e.preventDefault();
      call("PUT", "/api/links", {linkId: edit.linkId.value, title: edit.editTitle.value, url: edit.editUrl.value,
                                 icon: edit.editIcon.value, moveToCategoryId: edit.moveToCategoryId.value});
    };
    document.getElementById("add").onsubmit = function (e) {
      e.preventDefault();
      var f = e.target;
      call("POST", "/api/links", {categoryId: f.categoryId.value, categoryName: f.categoryName.value,
                                  title: f.linkTitle.value, url: f.linkUrl.value, icon: f.linkIcon.value});
    };
  </script>
"""


def render_dashboard_page(tree: LinkTree) -> str:
    sections = "".join(_render_category(c) for c in tree.categories)
    options = "".join(
        f'<option value="{html.escape(c.id, quote=True)}">{html.escape(c.name)}</option>'
        for c in tree.categories
    )
    return (
        _HEAD
        + "<body>\n"
        + '  <header><a href="/logout">Log out</a></header>\n'
        + f"  <main>{sections}</main>\n"
        + '  <form id="add" class="box">\n'
        + f'    <select name="categoryId">{options}</select>\n'
        + '    <input name="categoryName" placeholder="…or new category"/>\n'
        + '    <input name="linkTitle" placeholder="Title" required/>\n'
        + '    <input name="linkUrl" placeholder="https://" required/>\n'
        + '    <input name="linkIcon" placeholder="Icon URL (optional)"/>\n'
        + '    <button type="submit">Add link</button>\n'
        + "  </form>\n"
        + '  <form id="edit" class="box" hidden>\n'
        + '    <input type="hidden" name="linkId"/>\n'
        + '    <input name="editTitle" placeholder="Title" required/>\n'
        + '    <input name="editUrl" placeholder="https://" required/>\n'
        + '    <input name="editIcon" placeholder="Icon URL (blank for favicon)"/>\n'
        + f'    <select name="moveToCategoryId">{options}</select>\n'
        + '    <button type="submit">Save link</button>\n'
        + '    <button type="button" id="edit-cancel">Cancel</button>\n'
        + "  </form>\n"
        + '  <div id="toast"></div>\n'
        + _DASHBOARD_SCRIPT
        + "</body>\n</html>"
    )
