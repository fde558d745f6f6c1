from __future__ import annotations
import argparse
import logging
from flask import Flask, request, jsonify, Response

from tagsearch.autocomplete import apply_suggestion
from tagsearch.config import VERBOSE
from tagsearch.engine import Engine
from tagsearch.models import ImageResolution
from tagsearch.state import Done, Idle, InProgress

app = Flask(__name__)
_engine: Engine | None = None


def _state_json() -> dict:
    state = _engine.get_state()  # type: ignore
    if isinstance(state, InProgress):
        return {"state": "searching", "processed": state.processed, "total": state.total}
    if isinstance(state, Done):
        out = {"state": "done", "count": len(state.results), "cursor": state.cursor, "post": None}
        if state.current is not None:
            post = _engine.post(state.current)  # type: ignore
            out["post"] = {
                "id": post.id, "score": post.score, "fav_count": post.fav_count,
                "file_ext": post.file_ext.value,
                "sample": post.url(ImageResolution.SAMPLE), "full": post.url(ImageResolution.FULL),
            }
        return out
    assert isinstance(state, Idle)
    return {"state": "idle", "message": state.message,
            "range": list(state.error_range) if state.error_range else None}


# ---------- API ----------
@app.get("/api/autocomplete")
def api_autocomplete():
    q = request.args.get("q", "", type=str)
    cursor = request.args.get("cursor", len(q), type=int)
    result = _engine.autocomplete(q, cursor)  # type: ignore
    if result is None:
        return jsonify({"range": None, "matches": []})
    return jsonify({
        "range": list(result.token_range),
        "matches": [
            {"name": s.tag.name, "alias": s.alias, "display": s.display, "color": s.color,
             "category": s.tag.category.name.lower(), "post_count": s.tag.post_count}
            for s in result.matches
        ],
    })


@app.post("/api/select")
def api_select():
    body = request.get_json(silent=True) or {}
    q = str(body.get("q", ""))
    try:
        start, end = body.get("range") or (0, 0)
        text, cursor = apply_suggestion(q, (int(start), int(end)), str(body.get("name", "")))
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"text": text, "cursor": cursor})


@app.post("/api/search")
def api_search():
    body = request.get_json(silent=True) or {}
    q = str(body.get("q", request.form.get("q", "")))
    error_range = _engine.start_search(q)  # type: ignore
    if error_range is not None:
        return jsonify({"ok": False, **_state_json()}), 400
    return jsonify({"ok": True})


@app.get("/api/state")
def api_state():
    return jsonify(_state_json())


@app.post("/api/step")
def api_step():
    body = request.get_json(silent=True) or {}
    _engine.step(int(body.get("delta", 1)))  # type: ignore
    return jsonify(_state_json())


@app.get("/api/health")
def api_health():
    return jsonify({"ok": _engine is not None,
                    "tags": len(_engine.tag_db) if _engine else 0,
                    "posts": len(_engine.post_db) if _engine else 0})


# ---------- UI ----------
@app.get("/")
def home():
    # single page: query box, suggestion list, progress, one result at a time
    html = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>Tag search</title>
<style>
body{margin:0;background:#0b0f14;color:#cfd8e3;font:15px/1.4 system-ui,sans-serif}
.container{max-width:980px;margin:24px auto;padding:0 16px}
input{width:100%;padding:10px 12px;border-radius:10px;border:1px solid #1c2530;background:#0b1117;color:#cfd8e3;font-size:16px;box-sizing:border-box}
#ac{border:1px solid #1c2530;border-radius:10px;margin-top:4px;display:none}
#ac div{display:flex;justify-content:space-between;padding:4px 12px;cursor:pointer}
#ac div:hover{background:#111825}
#status{margin:12px 0;color:#8a94a6}
progress{width:100%}
img{max-width:100%}
</style>
</head>
<body>
<div class="container">
  <input id="q" type="text" placeholder="Enter a search query" autocomplete="off" autofocus />
  <div id="ac"></div>
  <div id="status">Enter a search query</div>
  <progress id="bar" max="1" value="0" hidden></progress>
  <div id="out"></div>
</div>
<script>
const $ = (s) => document.querySelector(s);
const q = $("#q"), ac = $("#ac"), status = $("#status"), bar = $("#bar"), out = $("#out");
let acRange = null, polling = null;

async function autocomplete(){
  const r = await fetch(`/api/autocomplete?q=${encodeURIComponent(q.value)}&cursor=${q.selectionStart}`);
  const data = await r.json();
  acRange = data.range;
  if(!data.matches.length){ ac.style.display = "none"; return; }
  ac.innerHTML = "";
  for(const m of data.matches){
    const row = document.createElement("div");
    row.style.color = m.color;
    row.innerHTML = `<span></span><span>${m.post_count}</span>`;
    row.firstChild.textContent = m.display;
    row.onclick = () => select(m.name);
    ac.appendChild(row);
  }
  ac.style.display = "block";
}

async function select(name){
  const r = await fetch("/api/select", {method:"POST", headers:{"Content-Type":"application/json"},
    body: JSON.stringify({q: q.value, range: acRange, name})});
  const data = await r.json();
  q.value = data.text; q.focus(); q.setSelectionRange(data.cursor, data.cursor);
  ac.style.display = "none";
}

function render(s){
  bar.hidden = s.state !== "searching";
  if(s.state === "searching"){ bar.value = s.total ? s.processed / s.total : 1; status.textContent = "Searching…"; return; }
  if(s.state === "idle"){ status.textContent = s.message; out.innerHTML = ""; return; }
  if(!s.count){ status.textContent = "No results"; out.innerHTML = ""; return; }
  status.textContent = `Showing result ${s.cursor + 1} of ${s.count} (id ${s.post.id})`;
  out.innerHTML = `<a href="${s.post.full}"><img src="${s.post.sample}" /></a>`;
}

async function poll(){
  const s = await (await fetch("/api/state")).json();
  render(s);
  if(s.state !== "searching"){ clearInterval(polling); polling = null; }
}

async function search(){
  ac.style.display = "none";
  const r = await fetch("/api/search", {method:"POST", headers:{"Content-Type":"application/json"},
    body: JSON.stringify({q: q.value})});
  const data = await r.json();
  if(!data.ok){
    render(data);
    if(data.range){ q.focus(); q.setSelectionRange(data.range[0], data.range[1]); }
    return;
  }
  if(!polling) polling = setInterval(poll, 100);
}

async function step(delta){
  const r = await fetch("/api/step", {method:"POST", headers:{"Content-Type":"application/json"},
    body: JSON.stringify({delta})});
  render(await r.json());
}

q.addEventListener("input", autocomplete);
q.addEventListener("keydown", (ev)=>{ if(ev.key === "Enter"){ search(); } });
window.addEventListener("keydown", (ev)=>{
  if(document.activeElement === q) return;
  if(ev.key === "ArrowLeft") step(-1);
  else if(ev.key === "ArrowRight") step(1);
});
</script>
</body>
</html>
"""
    return Response(html, mimetype="text/html")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run the tag search web UI")
    ap.add_argument("--data", required=True, help="Folder with tags/tag_aliases/posts CSV exports")
    ap.add_argument("--workers", type=int, default=None)
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    if args.verbose or VERBOSE:
        logging.basicConfig(level=logging.INFO)

    global _engine
    _engine = Engine.load(args.data, workers=args.workers)
    try:
        app.run(host=args.host, port=args.port, debug=False)
    finally:
        _engine.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
