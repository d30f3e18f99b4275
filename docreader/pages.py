"""HTML pages served by the web surface (rendered with render_template_string)."""

BASE_STYLE = r"""
    :root {
      --bg: #000000;
      --panel: #0b140d;
      --panel2: #102015;
      --text: #00ff41;
      --muted: #5fae74;
      --accent: #00cc00;
      --danger: #ff5c5c;
      --line: #1f3a26;
      --mono-font: "Roboto Mono", "SF Mono", Menlo, Consolas, "Liberation Mono", monospace;
    }
    * { box-sizing: border-box; }
    html, body { height: 100%; }
    body {
      margin: 0;
      background: var(--bg);
      color: var(--text);
      font-family: var(--mono-font);
    }
    .btn, button, input, select {
      background: var(--panel2);
      color: var(--text);
      border: 1px solid var(--line);
      border-radius: 8px;
      padding: 7px 10px;
      font-family: inherit;
    }
    button { cursor: pointer; }
    .btn:hover, button:hover { border-color: var(--accent); }
    .error { color: var(--danger); }
    .muted { color: var(--muted); }
"""

LIST_PAGE = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>My Documents</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
""" + BASE_STYLE + r"""
    main { max-width: 760px; margin: 0 auto; padding: 24px 16px; }
    h1 { font-size: 28px; margin: 8px 0 16px; }
    form { display: flex; gap: 8px; flex-wrap: wrap; margin-bottom: 20px; }
    form input[name=path] { flex: 3 1 320px; }
    form input[name=name] { flex: 1 1 160px; }
    .card {
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 12px;
      padding: 14px 18px;
      margin: 8px 0;
    }
    .card .title { font-size: 18px; font-weight: bold; }
    .card .row { display: flex; gap: 8px; justify-content: flex-end; margin-top: 8px; }
    #empty { padding: 48px 24px; text-align: center; font-size: 18px; }
  </style>
</head>
<body>
<main>
  <h1>My Documents</h1>
  <form id="addForm">
    <input name="path" placeholder="/path/to/document.html" required />
    <input name="name" placeholder="Name (optional)" />
    <button type="submit">Add document</button>
  </form>
  <div id="status"></div>
  <div id="list"></div>
  <div id="empty" class="muted" hidden>No documents yet. Add an HTML, MHT or text file.</div>
</main>
<script>
(() => {
  const els = {
    form: document.getElementById("addForm"),
    list: document.getElementById("list"),
    empty: document.getElementById("empty"),
    status: document.getElementById("status"),
  };

  function setStatus(msg, isError = false) {
    els.status.textContent = msg;
    els.status.className = isError ? "error" : "muted";
  }

  function escapeHtml(s) {
    return String(s)
      .replaceAll("&", "&amp;")
      .replaceAll("<", "&lt;")
      .replaceAll(">", "&gt;")
      .replaceAll('"', "&quot;");
  }

  function renderList(docs) {
    els.empty.hidden = docs.length > 0;
    els.list.innerHTML = docs.map((d) => `
      <div class="card" data-key="${d.key}">
        <div class="title">${escapeHtml(d.name)}</div>
        <div class="muted">${d.percent_read === null ? escapeHtml(d.identity) : `${d.percent_read}% read`}</div>
        <div class="row">
          <a class="btn" href="/read/${d.key}">Open</a>
          <button data-delete="${d.key}">Delete</button>
        </div>
      </div>`).join("");
  }

  async function refreshList() {
    const res = await fetch("/api/documents");
    const data = await res.json();
    renderList(data.documents || []);
  }

  els.form.addEventListener("submit", async (ev) => {
    ev.preventDefault();
    const form = new FormData(els.form);
    try {
      const res = await fetch("/api/documents", {
        method: "POST",
        headers: { "Content-Type": "application/json" },
        body: JSON.stringify({ path: form.get("path"), name: form.get("name") }),
      });
      const data = await res.json();
      if (!res.ok || !data.ok) throw new Error(data.error || "Could not add document");
      els.form.reset();
      setStatus(`Added ${data.document.name}`);
      refreshList();
    } catch (err) {
      setStatus(err.message || String(err), true);
    }
  });

  els.list.addEventListener("click", async (ev) => {
    const key = ev.target.dataset && ev.target.dataset.delete;
    if (!key) return;
    await fetch(`/api/documents/${key}`, { method: "DELETE" });
    refreshList();
  });

  window.addEventListener("pageshow", refreshList);
})();
</script>
</body>
</html>
"""

READER_PAGE = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{{ record.display_name }}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
""" + BASE_STYLE + r"""
    .app { display: grid; grid-template-rows: auto 1fr; height: 100vh; }
    .topbar {
      display: flex;
      gap: 10px;
      align-items: center;
      padding: 10px 12px;
      background: var(--panel);
      border-bottom: 1px solid var(--line);
      flex-wrap: wrap;
    }
    .topbar .title { font-size: 20px; flex: 1 1 auto; }
    #docFrame { width: 100%; height: 100%; border: 0; background: var(--bg); }
    #rsvpOverlay {
      position: fixed;
      inset: 0;
      background: var(--bg);
      display: flex;
      align-items: center;
      justify-content: center;
      z-index: 10;
    }
    #rsvpOverlay[hidden] { display: none; }
    #rsvpWord { font-size: 80px; text-align: center; white-space: pre-line; padding: 0 16px; }
    #rsvpNotice { font-size: 22px; }
    .rsvp-controls {
      position: absolute;
      left: 20px;
      right: 20px;
      bottom: 60px;
      display: flex;
      gap: 12px;
      align-items: center;
    }
    .rsvp-controls input[type=range] { flex: 1 1 auto; }
    #rsvpButton { position: fixed; right: 40px; bottom: 60px; z-index: 11; background: #006400; }
  </style>
</head>
<body>
<div class="app">
  <div class="topbar">
    <button id="backBtn">Back</button>
    <span class="title">{{ record.display_name }}</span>
    <button id="zoomOutBtn">A-</button>
    <button id="zoomInBtn">A+</button>
    <span id="status" class="muted"></span>
  </div>
  <iframe id="docFrame" title="{{ record.display_name }}"></iframe>
</div>

<div id="rsvpOverlay" hidden>
  <div id="rsvpWord"></div>
  <div class="rsvp-controls">
    <button id="pauseBtn">Pause</button>
    <input id="wpmInput" type="range" min="{{ min_wpm }}" max="{{ max_wpm }}" step="25" value="{{ default_wpm }}" />
    <span id="wpmLabel">{{ default_wpm }} wpm</span>
  </div>
</div>
<button id="rsvpButton">RSVP</button>

<script>
(() => {
  const KEY = {{ record.key | tojson }};
  const OBSERVE_INTERVAL_MS = {{ observe_interval_ms | int }};
  const CONTENT_URL = `/read/${KEY}/content`;

  const state = {
    generation: null,
    zoom: 1,
    view: "continuous",
    frameDepth: 0,
    goingBack: false,
    loads: 0,
    observeTimer: null,
    scrollTimer: null,
    rsvpPoll: null,
  };

  const els = {
    frame: document.getElementById("docFrame"),
    status: document.getElementById("status"),
    backBtn: document.getElementById("backBtn"),
    zoomInBtn: document.getElementById("zoomInBtn"),
    zoomOutBtn: document.getElementById("zoomOutBtn"),
    rsvpButton: document.getElementById("rsvpButton"),
    rsvpOverlay: document.getElementById("rsvpOverlay"),
    rsvpWord: document.getElementById("rsvpWord"),
    pauseBtn: document.getElementById("pauseBtn"),
    wpmInput: document.getElementById("wpmInput"),
    wpmLabel: document.getElementById("wpmLabel"),
  };

  function setStatus(msg, isError = false) {
    els.status.textContent = msg;
    els.status.className = isError ? "error" : "muted";
  }

  async function api(event, payload, method = "POST") {
    if (state.generation === null) return null;
    const opts = { method, headers: { "Content-Type": "application/json" } };
    if (method === "POST") opts.body = JSON.stringify(payload || {});
    const res = await fetch(`/api/session/${state.generation}/${event}`, opts);
    if (res.status === 409) return null;  // session superseded
    const data = await res.json();
    if (!res.ok || !data.ok) throw new Error(data.error || `${event} failed`);
    return data;
  }

  function frameWindow() {
    try { return els.frame.contentWindow; } catch (e) { return null; }
  }

  function frameDoc() {
    try { return els.frame.contentDocument; } catch (e) { return null; }
  }

  function metrics() {
    const w = frameWindow();
    const d = frameDoc();
    if (!w || !d || !d.documentElement) return { zoom: state.zoom };
    return {
      offset: Math.round(w.scrollY),
      horizontal: Math.round(w.scrollX),
      viewport_height: w.innerHeight,
      content_height: d.body ? d.body.scrollHeight : null,
      zoom: state.zoom,
    };
  }

  function injectTheme(d) {
    const style = d.createElement("style");
    style.textContent = `
      html, body { background: #000000 !important; color: #00FF41 !important; }
      body { margin: 0; padding: 16px; font-family: monospace; }
      body * { background: transparent !important; color: #00FF41 !important; }
      a { color: #00CC00 !important; }`;
    (d.head || d.documentElement).appendChild(style);
  }

  function openExternalLinksOutside(d) {
    // a cross-origin frame cannot be observed, so web links open in a new tab
    d.addEventListener("click", (ev) => {
      const a = ev.target.closest ? ev.target.closest("a[href]") : null;
      if (!a) return;
      const url = new URL(a.getAttribute("href"), d.baseURI);
      if (!/^https?:$/.test(url.protocol) || url.origin === window.location.origin) return;
      ev.preventDefault();
      window.open(url.href, "_blank", "noopener");
    });
  }

  function applyZoom() {
    const d = frameDoc();
    if (d && d.body) d.body.style.zoom = String(state.zoom);
  }

  function applyPendingOffset() {
    // offsets are a no-op before layout, so wait for the next frame
    requestAnimationFrame(async () => {
      const data = await api("layout");
      const w = frameWindow();
      if (data && data.offset && w) w.scrollTo(data.offset.horizontal, data.offset.vertical);
    });
  }

  function observe() {
    if (document.hidden || state.view !== "continuous") return;
    api("observe", metrics()).catch((err) => console.error(err));
  }

  function onScroll() {
    if (state.scrollTimer) return;
    state.scrollTimer = setTimeout(() => {
      state.scrollTimer = null;
      const m = metrics();
      api("scroll", { offset: m.offset, horizontal: m.horizontal }).catch((err) => console.error(err));
    }, 250);
  }

  function background() {
    if (state.generation === null) return;
    const body = new Blob([JSON.stringify(metrics())], { type: "application/json" });
    navigator.sendBeacon(`/api/session/${state.generation}/background`, body);
  }

  async function reportLoadError(description) {
    setStatus(`Failed to load: ${description}`, true);
    await api("load-error", { description });
    els.frame.src = `${CONTENT_URL}?fallback=${Date.now()}`;
  }

  async function loadFrame() {
    try {
      const res = await fetch(CONTENT_URL, { method: "HEAD" });
      if (!res.ok) return reportLoadError(`${res.status} ${res.statusText}`);
    } catch (err) {
      return reportLoadError(err.message || String(err));
    }
    els.frame.src = CONTENT_URL;
  }

  els.frame.addEventListener("load", () => {
    const d = frameDoc();
    const w = frameWindow();
    if (!d || !w) {
      // the document already rendered; the frame was navigated somewhere else
      if (state.loads > 0) {
        state.frameDepth += 1;
        return setStatus("Left the document; press Back to return", true);
      }
      return reportLoadError("Document could not be accessed");
    }
    state.loads += 1;
    if (state.loads > 1) state.frameDepth += state.goingBack ? -1 : 1;
    state.frameDepth = Math.max(0, state.frameDepth);
    state.goingBack = false;

    injectTheme(d);
    openExternalLinksOutside(d);
    applyZoom();
    w.addEventListener("scroll", onScroll, { passive: true });

    api("load-finished", metrics()).then(applyPendingOffset).catch((err) => console.error(err));
    setTimeout(observe, 1000);
    clearInterval(state.observeTimer);
    state.observeTimer = setInterval(observe, OBSERVE_INTERVAL_MS);
  });

  // ---------------------------------------------------------------
  // RSVP
  // ---------------------------------------------------------------

  function renderRsvp(data) {
    if (!data) return;
    const previous = state.view;
    state.view = data.state;
    const active = data.state !== "continuous";

    els.rsvpOverlay.hidden = !active;
    if (data.state === "transitioning_to_rsvp") els.rsvpWord.textContent = "…";
    else els.rsvpWord.textContent = data.notice || data.word || "";
    els.pauseBtn.textContent = data.state === "rsvp_paused" ? "Resume" : "Pause";
    els.wpmInput.value = String(data.wpm);
    els.wpmLabel.textContent = `${data.wpm} wpm`;

    if (active) {
      if (!state.rsvpPoll) state.rsvpPoll = setInterval(pollRsvp, 100);
      return;
    }
    clearInterval(state.rsvpPoll);
    state.rsvpPoll = null;
    if (previous !== "continuous") {
      if (data.word_count === 0 && data.last_exit === "empty") setStatus("No readable text detected");
      applyPendingOffset();
    }
  }

  async function pollRsvp() {
    try {
      renderRsvp(await api("state", null, "GET"));
    } catch (err) {
      console.error(err);
    }
  }

  els.rsvpButton.addEventListener("click", async () => {
    if (state.view === "continuous") {
      els.rsvpOverlay.hidden = false;
      els.rsvpWord.textContent = "…";
    }
    // the last throttled scroll report may be stale
    const m = state.view === "continuous" ? metrics() : {};
    renderRsvp(await api("rsvp/toggle", m));
  });

  els.pauseBtn.addEventListener("click", async (ev) => {
    ev.stopPropagation();
    renderRsvp(await api("rsvp/pause"));
  });

  els.wpmInput.addEventListener("click", (ev) => ev.stopPropagation());
  els.wpmInput.addEventListener("input", () => {
    els.wpmLabel.textContent = `${els.wpmInput.value} wpm`;
  });
  els.wpmInput.addEventListener("change", async () => {
    renderRsvp(await api("rsvp/wpm", { wpm: parseInt(els.wpmInput.value, 10) }));
  });

  els.rsvpOverlay.addEventListener("pointerdown", async (ev) => {
    if (ev.target.closest(".rsvp-controls")) return;
    renderRsvp(await api("rsvp/tap"));
  });

  // ---------------------------------------------------------------
  // navigation, zoom, lifecycle
  // ---------------------------------------------------------------

  async function goBack() {
    const data = await api("back", { ...metrics(), can_go_back: state.frameDepth > 0 });
    if (!data) return;
    if (data.action === "exit_rsvp") renderRsvp(data);
    else if (data.action === "go_back") {
      state.goingBack = true;
      try {
        frameWindow().history.back();
      } catch (err) {
        // cross-origin history is off limits; reload the document instead
        state.frameDepth = 0;
        state.loads = 0;
        state.goingBack = false;
        els.frame.src = CONTENT_URL;
      }
    } else {
      state.generation = null;
      window.location.href = "/";
    }
  }

  els.backBtn.addEventListener("click", goBack);
  document.addEventListener("keydown", (ev) => {
    if (ev.key === "Escape") goBack();
    if (ev.key === " " && state.view.startsWith("rsvp")) {
      ev.preventDefault();
      els.pauseBtn.click();
    }
  });

  async function changeZoom(delta) {
    state.zoom = Math.max(0.25, Math.min(5, Math.round((state.zoom + delta) * 100) / 100));
    applyZoom();
    await api("zoom", { zoom: state.zoom });
  }
  els.zoomInBtn.addEventListener("click", () => changeZoom(0.1));
  els.zoomOutBtn.addEventListener("click", () => changeZoom(-0.1));

  document.addEventListener("visibilitychange", () => {
    if (document.visibilityState === "hidden") background();
  });
  window.addEventListener("pagehide", background);

  async function openDocument() {
    setStatus("Opening...");
    const res = await fetch(`/api/read/${KEY}/open`, { method: "POST" });
    const data = await res.json();
    if (!res.ok || !data.ok) {
      alert(data.error || "Cannot open document");
      window.location.href = "/";
      return;
    }
    state.generation = data.generation;
    state.zoom = data.zoom || 1;
    setStatus(data.failed ? "Showing raw content" : "");
    renderRsvp(data);
    loadFrame();
  }

  openDocument();
})();
</script>
</body>
</html>
"""

TEXT_PAGE = r"""<!doctype html>
<html>
<head>
<meta charset="utf-8" />
<style>
  body { margin: 0; padding: 16px 24px 80px; }
  pre { white-space: pre; font-size: 18px; line-height: 1.4; font-family: monospace; }
</style>
</head>
<body><pre>{{ text }}</pre></body>
</html>
"""
