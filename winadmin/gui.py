"""Point-and-click Robocopy front-end (tkinter).

The copy runs on a worker thread; log records reach the log pane through
``root.after`` so only the Tk thread touches widgets.
"""

from __future__ import annotations
import threading
from pathlib import Path

from . import robocopy
from .errors import ToolError
from .logger import log, setup_logging

TAG_COLORS = {"success": "#2e7d32", "warning": "#b26a00", "error": "#c62828", "debug": "#777777"}

def run_copy(source: str, destination: str, mirror: bool, dry_run: bool) -> bool:
    """Worker body: returns True when robocopy reported success."""
    if not source or not destination:
        log.error("Choose a source and a destination folder first")
        return False
    try:
        robocopy.copy_tree(source, destination, mirror=mirror, dry_run=dry_run)
    except ToolError as e:
        log.error("%s", e)
        return False
    return True

def launch(log_dir: str | Path | None = None) -> None:
    import tkinter as tk
    from tkinter import filedialog, messagebox, ttk

    root = tk.Tk()
    root.title("winadmin – Robocopy")
    frame = ttk.Frame(root, padding=10)
    frame.grid(sticky="nsew")
    root.columnconfigure(0, weight=1)
    root.rowconfigure(0, weight=1)

    src_var, dst_var = tk.StringVar(), tk.StringVar()
    mirror_var, dry_var = tk.BooleanVar(value=False), tk.BooleanVar(value=True)

    def _browse(var):
        folder = filedialog.askdirectory()
        if folder:
            var.set(folder)

    for row, (label, var) in enumerate((("Source", src_var), ("Destination", dst_var))):
        ttk.Label(frame, text=label).grid(row=row, column=0, sticky="w")
        ttk.Entry(frame, textvariable=var, width=60).grid(row=row, column=1, sticky="ew", padx=5)
        ttk.Button(frame, text="Browse…", command=lambda v=var: _browse(v)).grid(row=row, column=2)

    ttk.Checkbutton(frame, text="Mirror (/MIR – deletes extra files)", variable=mirror_var).grid(
        row=2, column=1, sticky="w")
    ttk.Checkbutton(frame, text="Dry run (/L)", variable=dry_var).grid(row=3, column=1, sticky="w")

    log_text = tk.Text(frame, height=16, width=100, font=("Consolas", 9), state="disabled", wrap="word")
    log_text.grid(row=5, column=0, columnspan=3, sticky="nsew", pady=(8, 0))
    for tag, colour in TAG_COLORS.items():
        log_text.tag_configure(tag, foreground=colour)
    frame.columnconfigure(1, weight=1)
    frame.rowconfigure(5, weight=1)

    setup_logging(log_dir, prefix="winadmin-gui", gui_widget=log_text,
                  gui_dispatch=lambda fn: root.after(0, fn))

    def _start():
        if mirror_var.get() and not dry_var.get() and not messagebox.askyesno(
                "Mirror", "Files missing from the source will be deleted from the destination. Continue?"):
            return
        run_btn.state(["disabled"])
        args = (src_var.get(), dst_var.get(), mirror_var.get(), dry_var.get())

        def _work():
            try:
                run_copy(*args)
            finally:
                root.after(0, lambda: run_btn.state(["!disabled"]))

        threading.Thread(target=_work, daemon=True).start()

    run_btn = ttk.Button(frame, text="Run", command=_start)
    run_btn.grid(row=4, column=1, sticky="e", pady=5)
    root.mainloop()
