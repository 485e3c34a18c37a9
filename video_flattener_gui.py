"""
Video Folder Flattener - GUI

Tkinter front end for the video folder flattener engine. Pick a root
folder, scan its immediate subfolders for ones that contain only video
files, tick the ones to flatten and move their videos up into the root.

FEATURES:
- Root folder chooser, with drag-and-drop when tkinterdnd2 is installed
- Table of pure video folders with per-row selection
- Select all / clear selection
- Confirmation before moving
- Scans and moves run on a background thread
- Timestamped operation log
"""
from __future__ import annotations

import argparse
import queue
import threading
import time
import tkinter as tk
from tkinter import filedialog, messagebox, ttk
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from video_flattener_core import (
    VIDEO_EXTENSIONS,
    Match,
    MoveReport,
    ReportEntry,
    ScanError,
    classify,
    flatten,
    get_logger,
    parse_extensions,
)

# Optional drag and drop
try:
    from tkinterdnd2 import DND_FILES, TkinterDnD  # type: ignore
    HAS_DND = True
except ImportError:
    TkinterDnD = None
    DND_FILES = None
    HAS_DND = False


COLORS = {
    'primary': '#6366f1',
    'accent': '#10b981',
    'danger': '#ef4444',
    'bg_primary': '#0f172a',
    'bg_secondary': '#1e293b',
    'bg_tertiary': '#334155',
    'text_primary': '#f8fafc',
    'text_secondary': '#cbd5e1',
    'text_muted': '#64748b',
    'border_light': '#4b5563',
}

CHECKED = "☑"
UNCHECKED = "☐"


class ModernTheme:
    """Dark ttk theme shared by all widgets."""

    @staticmethod
    def apply(root: tk.Tk) -> None:
        style = ttk.Style(root)

        available_themes = style.theme_names()
        if 'clam' in available_themes:
            style.theme_use('clam')
        else:
            style.theme_use('default')

        style.configure("Main.TFrame", background=COLORS['bg_primary'])
        style.configure(
            "Title.TLabel",
            background=COLORS['bg_primary'],
            foreground=COLORS['text_primary'],
            font=('Segoe UI', 18, 'bold')
        )
        style.configure(
            "Muted.TLabel",
            background=COLORS['bg_primary'],
            foreground=COLORS['text_muted'],
            font=('Segoe UI', 9)
        )
        style.configure(
            "Primary.TButton",
            background=COLORS['primary'],
            foreground=COLORS['text_primary'],
            borderwidth=0,
            padding=(12, 6)
        )
        style.map("Primary.TButton", background=[('disabled', COLORS['bg_tertiary'])])
        style.configure(
            "Danger.TButton",
            background=COLORS['danger'],
            foreground=COLORS['text_primary'],
            borderwidth=0,
            padding=(12, 6)
        )
        style.map("Danger.TButton", background=[('disabled', COLORS['bg_tertiary'])])
        style.configure(
            "Modern.TEntry",
            fieldbackground=COLORS['bg_tertiary'],
            foreground=COLORS['text_primary'],
        )
        style.configure(
            "Treeview",
            background=COLORS['bg_secondary'],
            fieldbackground=COLORS['bg_secondary'],
            foreground=COLORS['text_primary'],
            rowheight=24
        )
        style.configure(
            "Treeview.Heading",
            background=COLORS['bg_tertiary'],
            foreground=COLORS['text_secondary']
        )


class SelectionModel:
    """Which scanned folders the user wants flattened.

    Keyed by folder path. Rebuilt from scratch on every scan; the match
    records themselves are never modified.
    """

    def __init__(self) -> None:
        self.matches: List[Match] = []
        self._selected: Dict[Path, bool] = {}

    def reset(self, matches: Sequence[Match]) -> None:
        self.matches = list(matches)
        self._selected = {m.folder: m.selected for m in self.matches}

    def is_selected(self, folder: Path) -> bool:
        return self._selected.get(folder, False)

    def toggle(self, folder: Path) -> bool:
        if folder not in self._selected:
            raise KeyError(folder)
        self._selected[folder] = not self._selected[folder]
        return self._selected[folder]

    def set_all(self, value: bool) -> None:
        for folder in self._selected:
            self._selected[folder] = value

    def chosen(self) -> List[Match]:
        """Selected matches, in scan order."""
        return [m for m in self.matches if self._selected.get(m.folder)]


class Worker:
    """Background worker to run scans and moves without blocking the UI."""

    def __init__(self) -> None:
        self.thread: Optional[threading.Thread] = None

    def start(self, target, *args, **kwargs) -> None:
        self.thread = threading.Thread(
            target=target, args=args, kwargs=kwargs, daemon=True
        )
        self.thread.start()

    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()


class VideoFlattenerApp:
    """Main window: root chooser, match table, action buttons and log."""

    def __init__(
        self,
        root: tk.Tk,
        extensions=VIDEO_EXTENSIONS,
        initial_root: Optional[Path] = None,
    ) -> None:
        self.root = root
        self.root.title("Video Folder Flattener")
        self.root.configure(bg=COLORS['bg_primary'])
        self.root.geometry('1000x600')
        self.root.minsize(800, 500)

        self.logger = get_logger()
        self.extensions = frozenset(extensions)
        self.root_dir: Optional[Path] = None
        self.path_var = tk.StringVar()
        self.selection = SelectionModel()

        self.events: "queue.Queue[dict]" = queue.Queue()
        self.worker = Worker()
        self.busy = False

        ModernTheme.apply(self.root)
        self._build_ui()
        self._setup_drag_drop()
        self._setup_keyboard_shortcuts()
        self._poll_events()

        self.root.protocol("WM_DELETE_WINDOW", self._on_closing)

        if initial_root is not None:
            self._set_root(initial_root)
            self.root.after(200, self._scan)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        main = ttk.Frame(self.root, style="Main.TFrame")
        main.pack(fill="both", expand=True, padx=16, pady=16)

        ttk.Label(main, text="Video Folder Flattener", style="Title.TLabel").pack(anchor="w")
        ttk.Label(
            main,
            text="Extensions: " + ", ".join(sorted(self.extensions)),
            style="Muted.TLabel"
        ).pack(anchor="w", pady=(2, 12))

        # Root chooser
        choose = ttk.Frame(main, style="Main.TFrame")
        choose.pack(fill="x")
        ttk.Entry(
            choose,
            textvariable=self.path_var,
            state="readonly",
            style="Modern.TEntry"
        ).pack(side="left", fill="x", expand=True)
        ttk.Button(
            choose,
            text="Choose Folder…",
            command=self._browse_folder,
            style="Primary.TButton"
        ).pack(side="left", padx=(8, 0))

        # Actions
        actions = ttk.Frame(main, style="Main.TFrame")
        actions.pack(fill="x", pady=(10, 10))
        self.scan_btn = ttk.Button(
            actions, text="Scan Subfolders", command=self._scan, style="Primary.TButton"
        )
        self.select_all_btn = ttk.Button(
            actions, text="Select All", command=lambda: self._select_all(True),
            style="Primary.TButton"
        )
        self.clear_btn = ttk.Button(
            actions, text="Clear Selection", command=lambda: self._select_all(False),
            style="Primary.TButton"
        )
        self.move_btn = ttk.Button(
            actions, text="Move Selected", command=self._move_selected, style="Danger.TButton"
        )
        for btn in (self.scan_btn, self.select_all_btn, self.clear_btn, self.move_btn):
            btn.pack(side="left", padx=(0, 8))

        # Match table
        table_frame = ttk.Frame(main, style="Main.TFrame")
        table_frame.pack(fill="both", expand=True)
        columns = ("select", "folder", "videos", "size")
        self.table = ttk.Treeview(table_frame, columns=columns, show="headings", height=12)
        self.table.heading("select", text="Select")
        self.table.heading("folder", text="Folder")
        self.table.heading("videos", text="Videos")
        self.table.heading("size", text="Total Size")
        self.table.column("select", width=60, anchor="center", stretch=False)
        self.table.column("folder", width=560)
        self.table.column("videos", width=90, anchor="e", stretch=False)
        self.table.column("size", width=120, anchor="e", stretch=False)
        table_scroll = ttk.Scrollbar(table_frame, orient="vertical", command=self.table.yview)
        self.table.configure(yscrollcommand=table_scroll.set)
        self.table.pack(side="left", fill="both", expand=True)
        table_scroll.pack(side="right", fill="y")
        self.table.bind("<Button-1>", self._on_table_click)
        self.table.bind("<space>", self._on_table_space)

        # Log
        log_frame = ttk.Frame(main, style="Main.TFrame")
        log_frame.pack(fill="x", pady=(10, 0))
        self.log_text = tk.Text(
            log_frame,
            height=8,
            bg=COLORS['bg_tertiary'],
            fg=COLORS['text_primary'],
            insertbackground=COLORS['text_primary'],
            selectbackground=COLORS['border_light'],
            relief="flat",
            wrap="word",
            font=('Consolas', 9),
            padx=8,
            pady=8
        )
        log_scroll = ttk.Scrollbar(log_frame, orient="vertical", command=self.log_text.yview)
        self.log_text.configure(yscrollcommand=log_scroll.set)
        self.log_text.pack(side="left", fill="both", expand=True)
        log_scroll.pack(side="right", fill="y")
        self.log_text.tag_configure("error", foreground=COLORS['danger'])

    def _setup_drag_drop(self) -> None:
        """Setup drag and drop functionality if available."""
        if not HAS_DND or TkinterDnD is None:
            return
        if hasattr(self.root, 'drop_target_register'):
            self.root.drop_target_register(DND_FILES)
            self.root.dnd_bind('<<Drop>>', self._on_drop)
            self._log("Drag & drop enabled.")

    def _setup_keyboard_shortcuts(self) -> None:
        self.root.bind('<Control-o>', lambda e: self._browse_folder())
        self.root.bind('<F5>', lambda e: self._scan())
        self.root.bind('<Control-a>', lambda e: self._select_all(True))

    # ------------------------------------------------------------------
    # Root selection
    # ------------------------------------------------------------------

    def _on_drop(self, event) -> None:
        if self.busy:
            return
        files = self.root.tk.splitlist(event.data)
        if not files:
            return
        dropped = Path(files[0])
        if dropped.is_dir():
            self._set_root(dropped)
        else:
            self._set_root(dropped.parent)
            self._log(f"File dropped, using parent folder: {dropped.parent}")

    def _browse_folder(self) -> None:
        if self.busy:
            return
        initial_dir = str(self.root_dir) if self.root_dir else str(Path.home())
        path = filedialog.askdirectory(
            title="Choose Root Folder",
            initialdir=initial_dir,
            mustexist=True
        )
        if path:
            self._set_root(Path(path))

    def _set_root(self, path: Path) -> None:
        self.root_dir = path.expanduser().resolve()
        self.path_var.set(str(self.root_dir))
        self._show_matches([])
        self._log(f"Root set to: {self.root_dir}")

    def _ensure_root(self) -> bool:
        if self.root_dir is None:
            messagebox.showwarning("No Root Folder", "Please choose a root folder first.")
            return False
        if not self.root_dir.is_dir():
            self._log("[ERROR] Selected root is not a directory.", error=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Table
    # ------------------------------------------------------------------

    def _show_matches(self, matches: Sequence[Match]) -> None:
        self.selection.reset(matches)
        self.table.delete(*self.table.get_children())
        for m in self.selection.matches:
            self.table.insert(
                "", "end",
                iid=str(m.folder),
                values=(
                    CHECKED if self.selection.is_selected(m.folder) else UNCHECKED,
                    str(m.folder),
                    m.video_count,
                    m.size_human,
                )
            )

    def _refresh_checks(self) -> None:
        for m in self.selection.matches:
            mark = CHECKED if self.selection.is_selected(m.folder) else UNCHECKED
            self.table.set(str(m.folder), "select", mark)

    def _on_table_click(self, event) -> None:
        if self.table.identify_region(event.x, event.y) != "cell":
            return
        if self.table.identify_column(event.x) != "#1":
            return
        row = self.table.identify_row(event.y)
        if row:
            self._toggle_row(row)

    def _on_table_space(self, event) -> None:
        for row in self.table.selection():
            self._toggle_row(row)

    def _toggle_row(self, row: str) -> None:
        self.selection.toggle(Path(row))
        self._refresh_checks()

    def _select_all(self, value: bool) -> None:
        self.selection.set_all(value)
        self._refresh_checks()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _set_busy(self, busy: bool) -> None:
        self.busy = busy
        state = "disabled" if busy else "normal"
        for btn in (self.scan_btn, self.select_all_btn, self.clear_btn, self.move_btn):
            btn.config(state=state)

    def _scan(self) -> None:
        if self.busy or not self._ensure_root():
            return
        root_dir = self.root_dir
        self._set_busy(True)

        def scan_worker() -> None:
            try:
                matches = classify(
                    root_dir,
                    extensions=self.extensions,
                    log_cb=lambda entry: self.events.put({"phase": "log", "entry": entry}),
                )
                self.events.put({"phase": "scanned", "matches": matches})
            except ScanError as e:
                self.events.put({"phase": "error", "title": "Scan Failed", "error": str(e)})
            except Exception as e:
                self.logger.exception("Unexpected scan failure")
                self.events.put({"phase": "error", "title": "Scan Failed", "error": str(e)})

        self.worker = Worker()
        self.worker.start(scan_worker)

    def _move_selected(self) -> None:
        if self.busy or not self._ensure_root():
            return

        chosen = self.selection.chosen()
        if not chosen:
            messagebox.showinfo("Nothing to do", "No folders selected.")
            return

        if not messagebox.askokcancel(
            "Confirm Move",
            f"Move all video files from {len(chosen)} folder(s)\n"
            f"into the root folder?\n\nRoot: {self.root_dir}"
        ):
            return

        root_dir = self.root_dir
        self._set_busy(True)

        def move_worker() -> None:
            try:
                report = flatten(
                    root_dir,
                    chosen,
                    extensions=self.extensions,
                    log_cb=lambda entry: self.events.put({"phase": "log", "entry": entry}),
                )
                self.events.put({"phase": "moved", "report": report})
            except Exception as e:
                self.logger.exception("Unexpected move failure")
                self.events.put({"phase": "error", "title": "Move Failed", "error": str(e)})

        self.worker = Worker()
        self.worker.start(move_worker)

    def _poll_events(self) -> None:
        """Poll for worker thread events and update UI."""
        try:
            while True:
                event = self.events.get_nowait()
                self._handle_event(event)
        except queue.Empty:
            pass
        finally:
            self.root.after(50, self._poll_events)

    def _handle_event(self, event: dict) -> None:
        phase = event.get("phase")

        if phase == "log":
            entry: ReportEntry = event["entry"]
            text = f"[ERROR] {entry.message}" if entry.is_error else entry.message
            self._log(text, error=entry.is_error, to_file=False)
        elif phase == "scanned":
            self._set_busy(False)
            self._show_matches(event["matches"])
        elif phase == "moved":
            self._set_busy(False)
            self._handle_move_complete(event["report"])
        elif phase == "error":
            self._set_busy(False)
            self._show_matches([])
            self._log(f"[ERROR] {event['error']}", error=True)
            messagebox.showerror(event.get("title", "Error"), event["error"])

    def _handle_move_complete(self, report: MoveReport) -> None:
        if report.errors:
            messagebox.showwarning(
                "Move Completed with Errors",
                f"Moved {report.moved_files:,} file(s) with {report.errors:,} error(s).\n"
                "Check the log for details."
            )
        # Moved folders no longer qualify or exist
        self._scan()

    def _on_closing(self) -> None:
        # Moves cannot be cancelled; closing mid-run abandons the rest of the list
        if self.worker.is_running():
            if not messagebox.askyesno(
                "Operation in Progress",
                "Folders are still being processed. Exit anyway?"
            ):
                return
        self.root.destroy()

    def _log(self, message: str, error: bool = False, to_file: bool = True) -> None:
        """Add message to the log panel with a timestamp."""
        timestamp = time.strftime("%H:%M:%S")
        self.log_text.insert(tk.END, f"[{timestamp}] {message}\n", ("error",) if error else ())
        self.log_text.see(tk.END)
        if to_file:
            if error:
                self.logger.error(message)
            else:
                self.logger.info(message)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Flatten subfolders that contain only video files into their parent."
    )
    p.add_argument("root", nargs="?", help="Root folder to scan on startup.")
    p.add_argument(
        "--extensions",
        type=parse_extensions,
        default=VIDEO_EXTENSIONS,
        help="Comma separated video extensions (default: "
             + ", ".join(sorted(VIDEO_EXTENSIONS)) + ").",
    )
    p.add_argument("--log-file", type=Path, help="Write the log to this file.")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the application."""
    args = parse_args(argv)
    get_logger(args.log_file)

    if HAS_DND and TkinterDnD is not None:
        root = TkinterDnD.Tk()
    else:
        root = tk.Tk()

    VideoFlattenerApp(
        root,
        extensions=args.extensions,
        initial_root=Path(args.root) if args.root else None,
    )
    try:
        root.mainloop()
    except KeyboardInterrupt:
        print("\nApplication interrupted by user")


if __name__ == "__main__":
    main()
