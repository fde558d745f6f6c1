# app.py
# CustomTkinter GUI for the tag browser (dark theme).
# - Load tag/alias/post CSV exports from a folder on a background thread.
# - Live tag autocomplete under the cursor; click a suggestion to insert it.
# - Enter runs the search in the background; the state cell is polled for progress.
# - Left/Right (outside the query box) page through the results.

from __future__ import annotations
import logging
import threading
from typing import List, Optional

import tkinter.filedialog as fd
import tkinter.messagebox as mb
import customtkinter as ctk

# Project imports (pip install -e . or PYTHONPATH=src)
from tagsearch.autocomplete import Suggestion
from tagsearch.config import VERBOSE
from tagsearch.engine import Engine
from tagsearch.models import ImageResolution
from tagsearch.state import Done, Idle, InProgress

POLL_MS = 50


def shorten_path(p: str, max_chars: int = 60) -> str:
    """Shorten long paths neatly for labels."""
    if len(p) <= max_chars:
        return p
    keep = max_chars // 2 - 3
    return p[:keep] + "..." + p[-keep:]


class TagBrowserApp(ctk.CTk):
    """Dark-themed GUI: load exports, type a tag query, browse matching posts one at a time."""

    def __init__(self) -> None:
        super().__init__()

        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        self.title("Tag Browser")
        self.geometry("960x720")
        self.minsize(820, 600)

        # State
        self._engine: Optional[Engine] = None
        self._loading_thread: Optional[threading.Thread] = None
        self._suggestion_buttons: List[ctk.CTkButton] = []
        self._last_state = None

        # Fonts
        self.font_title = ctk.CTkFont(size=18, weight="bold")
        self.font_label = ctk.CTkFont(size=13)
        self.font_mono = ctk.CTkFont(family="Cascadia Mono, Menlo, Consolas, Courier New", size=13)

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(4, weight=1)  # result
        self.grid_rowconfigure(5, weight=1)  # log

        self._build_header()
        self._build_source_bar()
        self._build_search()
        self._build_suggestions()
        self._build_result()
        self._build_log()

        self.bind("<Left>", lambda ev: self._on_arrow(ev, -1))
        self.bind("<Right>", lambda ev: self._on_arrow(ev, 1))

        self._set_status("Ready")
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self.after(POLL_MS, self._poll_state)

    # --------- UI sections ---------

    def _build_header(self) -> None:
        header = ctk.CTkFrame(self, corner_radius=10)
        header.grid(row=0, column=0, sticky="ew", padx=12, pady=(12, 6))
        header.grid_columnconfigure(0, weight=1)
        ctk.CTkLabel(header, text="Tag Browser", font=self.font_title).grid(
            row=0, column=0, sticky="w", padx=12, pady=10
        )

    def _build_source_bar(self) -> None:
        bar = ctk.CTkFrame(self, corner_radius=10)
        bar.grid(row=1, column=0, sticky="ew", padx=12, pady=6)
        bar.grid_columnconfigure(1, weight=1)

        ctk.CTkButton(bar, text="Choose Folder", command=self._choose_folder).grid(
            row=0, column=0, padx=(12, 6), pady=10
        )

        self.lbl_source = ctk.CTkLabel(bar, text="No source selected", anchor="w", font=self.font_label)
        self.lbl_source.grid(row=0, column=1, sticky="ew", padx=6, pady=10)

        self.load_progress = ctk.CTkProgressBar(bar, mode="indeterminate", determinate_speed=1.2)
        self.load_progress.grid(row=0, column=2, sticky="e", padx=(0, 6), pady=10)

        self.lbl_status = ctk.CTkLabel(bar, text="Status: idle", anchor="e")
        self.lbl_status.grid(row=0, column=3, sticky="e", padx=12, pady=10)

    def _build_search(self) -> None:
        box = ctk.CTkFrame(self, corner_radius=10)
        box.grid(row=2, column=0, sticky="ew", padx=12, pady=6)
        box.grid_columnconfigure(0, weight=1)

        self.entry_query = ctk.CTkEntry(box, placeholder_text="Enter a search query", font=self.font_mono)
        self.entry_query.grid(row=0, column=0, sticky="ew", padx=(12, 6), pady=10)
        self.entry_query.bind("<KeyRelease>", self._on_query_changed)
        self.entry_query.bind("<Return>", lambda _ev: self._do_search())

        ctk.CTkButton(box, text="Search", width=90, command=self._do_search).grid(
            row=0, column=1, padx=(0, 12), pady=10
        )

    def _build_suggestions(self) -> None:
        self.suggestions = ctk.CTkScrollableFrame(self, corner_radius=10, height=140)
        self.suggestions.grid(row=3, column=0, sticky="ew", padx=12, pady=(0, 6))
        self.suggestions.grid_columnconfigure(0, weight=1)
        self.suggestions.grid_remove()

    def _build_result(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=4, column=0, sticky="nsew", padx=12, pady=6)
        frame.grid_columnconfigure(1, weight=1)
        frame.grid_rowconfigure(2, weight=1)

        self.search_progress = ctk.CTkProgressBar(frame, mode="determinate")
        self.search_progress.grid(row=0, column=0, columnspan=3, sticky="ew", padx=12, pady=(12, 6))
        self.search_progress.set(0)

        ctk.CTkButton(frame, text="◀", width=40, command=lambda: self._step(-1)).grid(
            row=1, column=0, padx=(12, 6), pady=6
        )
        self.lbl_result = ctk.CTkLabel(frame, text="", anchor="w", font=self.font_label)
        self.lbl_result.grid(row=1, column=1, sticky="ew", padx=6, pady=6)
        ctk.CTkButton(frame, text="▶", width=40, command=lambda: self._step(1)).grid(
            row=1, column=2, padx=(6, 12), pady=6
        )

        self.txt_result = ctk.CTkTextbox(frame, wrap="word", font=self.font_mono)
        self.txt_result.grid(row=2, column=0, columnspan=3, sticky="nsew", padx=12, pady=(0, 12))
        self.txt_result.configure(state="disabled")

    def _build_log(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=5, column=0, sticky="nsew", padx=12, pady=(6, 12))
        frame.grid_columnconfigure(0, weight=1)
        frame.grid_rowconfigure(1, weight=1)

        ctk.CTkLabel(frame, text="Event log", font=self.font_label).grid(
            row=0, column=0, sticky="w", padx=12, pady=(10, 2)
        )
        self.txt_log = ctk.CTkTextbox(frame, height=110, wrap="word", font=ctk.CTkFont(size=12))
        self.txt_log.grid(row=1, column=0, sticky="nsew", padx=12, pady=(0, 12))
        self._log("GUI ready. Choose a folder with tags/tag_aliases/posts exports to begin.")

    # --------- loading (threaded) ---------

    def _choose_folder(self) -> None:
        path = fd.askdirectory(title="Choose export folder")
        if not path:
            return
        if self._loading_thread and self._loading_thread.is_alive():
            mb.showinfo("Loading", "Exports are already loading. Please wait.")
            return

        self.lbl_source.configure(text=f"Folder: {shorten_path(path)}")
        self._set_status("Loading…")
        self.load_progress.start()

        self._loading_thread = threading.Thread(target=self._load_worker, args=(path,), daemon=True)
        self._loading_thread.start()

    def _load_worker(self, path: str) -> None:
        try:
            engine = Engine.load(path)
        except Exception as exc:
            self.after(0, lambda: self._on_load_error(exc))
            return
        self.after(0, lambda: self._on_load_ok(engine))

    def _on_load_ok(self, engine: Engine) -> None:
        self.load_progress.stop()
        if self._engine is not None:
            self._engine.shutdown()
        self._engine = engine
        self._set_status(f"Loaded {len(engine.tag_db):,} tags, {len(engine.post_db):,} posts.")
        self._log("Indexes ready.")
        self.entry_query.focus_set()

    def _on_load_error(self, exc: Exception) -> None:
        self.load_progress.stop()
        self._set_status("Error while loading exports.")
        self._log(f"ERROR: {exc!r}")
        mb.showerror("Load error", "Failed to load exports.\nSee event log for details.")

    # --------- autocomplete ---------

    def _on_query_changed(self, ev=None) -> None:
        if ev is not None and ev.keysym in ("Return", "Escape"):
            if ev.keysym == "Escape":
                self._show_suggestions([])
            return
        if self._engine is None:
            return
        query = self.entry_query.get()
        result = self._engine.autocomplete(query, self.entry_query.index("insert"))
        self._show_suggestions(list(result.matches) if result else [])

    def _show_suggestions(self, matches: List[Suggestion]) -> None:
        for btn in self._suggestion_buttons:
            btn.destroy()
        self._suggestion_buttons = []
        if not matches:
            self.suggestions.grid_remove()
            return
        for row, s in enumerate(matches):
            btn = ctk.CTkButton(
                self.suggestions, text=f"{s.display}  ({s.tag.post_count:,})", anchor="w",
                fg_color="transparent", text_color=s.color, hover_color="#1f2937",
                command=lambda s=s: self._apply_suggestion(s),
            )
            btn.grid(row=row, column=0, sticky="ew", padx=4, pady=1)
            self._suggestion_buttons.append(btn)
        self.suggestions.grid()

    def _apply_suggestion(self, suggestion: Suggestion) -> None:
        try:
            text, cursor = self._engine.select(self.entry_query.get(), suggestion)  # type: ignore
        except ValueError as exc:
            # query changed under the dropdown; offer fresh suggestions instead
            self._log(f"Suggestion out of date: {exc}")
            self._on_query_changed()
            return
        self.entry_query.delete(0, "end")
        self.entry_query.insert(0, text)
        self.entry_query.icursor(cursor)
        self.entry_query.focus_set()
        self._show_suggestions([])

    # --------- search ---------

    def _do_search(self) -> None:
        self._show_suggestions([])
        if self._engine is None:
            self._set_result_text("error: please load the exports before searching.")
            self._log("Search attempted before load.")
            return
        query = self.entry_query.get()
        error_range = self._engine.start_search(query)
        if error_range is not None:
            start, end = error_range
            self.entry_query.focus_set()
            self.entry_query.select_range(start, end)
            self.entry_query.icursor(end)
        else:
            self._log(f"Searching: {query}")

    def _step(self, delta: int) -> None:
        if self._engine is not None:
            self._engine.step(delta)

    def _on_arrow(self, ev, delta: int) -> None:
        # arrows inside the query box move the text cursor
        if str(ev.widget).startswith(str(self.entry_query)):
            return
        self._step(delta)

    def _poll_state(self) -> None:
        try:
            if self._engine is not None:
                state = self._engine.state.try_get()
                if state is not None and state is not self._last_state:
                    self._last_state = state
                    self._render_state(state)
        finally:
            self.after(POLL_MS, self._poll_state)

    def _render_state(self, state) -> None:
        if isinstance(state, InProgress):
            self.search_progress.set(state.fraction)
            self.lbl_result.configure(text=f"Searching… {state.processed:,} / {state.total:,}")
            return
        if isinstance(state, Idle):
            self.search_progress.set(0)
            self.lbl_result.configure(text=state.message)
            self._set_result_text("")
            return

        assert isinstance(state, Done)
        self.search_progress.set(1)
        if state.current is None:
            self.lbl_result.configure(text="No results")
            self._set_result_text("")
            return
        post = self._engine.post(state.current)  # type: ignore
        self.lbl_result.configure(
            text=f"Showing result {state.cursor + 1} of {len(state.results):,} (id {post.id})"
        )
        self._set_result_text(
            f"score: {post.score:<6} favs: {post.fav_count:<6} posted: {post.created_at:%Y-%m-%d}\n"
            f"sample: {post.url(ImageResolution.SAMPLE)}\n"
            f"full:   {post.url(ImageResolution.FULL)}"
        )

    # --------- misc UI helpers ---------

    def _set_status(self, text: str) -> None:
        self.lbl_status.configure(text=f"Status: {text}")

    def _set_result_text(self, text: str) -> None:
        self.txt_result.configure(state="normal")
        self.txt_result.delete("0.0", "end")
        if text:
            self.txt_result.insert("end", text)
        self.txt_result.configure(state="disabled")

    def _log(self, msg: str) -> None:
        self.txt_log.insert("end", msg + "\n")
        self.txt_log.see("end")

    # --------- lifecycle ---------

    def _on_close(self) -> None:
        if self._engine is not None:
            self._engine.shutdown()
        self.destroy()


if __name__ == "__main__":
    if VERBOSE:
        logging.basicConfig(level=logging.INFO)
    app = TagBrowserApp()
    app.mainloop()
