from __future__ import annotations

import io
import logging
import sys
import tkinter as tk
import tkinter.font as tkfont
from typing import Dict, List, Optional

import customtkinter as ctk
from PIL import Image, ImageTk

# Absolute imports so the module also works as a standalone entry point.
from doc_stacker.api_client import HttpDocumentService
from doc_stacker.autofill import auto_place_fields, auto_sign_all
from doc_stacker.capture import FreehandCapture, TypedCapture
from doc_stacker.config import (
    APP_AUTHOR,
    APP_DESCRIPTION,
    APP_NAME,
    APP_VERSION,
    BACKEND,
    CAPTURE_SIZE,
    DEFAULT_CANVAS_BG,
    DEFAULT_RENDER_DEBOUNCE_MS,
    DEFAULT_SIGNATURE_STYLE,
    DEFAULT_STATUS_BG,
    LOG_LEVEL,
    MAX_SIGNERS,
    SIGNATURE_STYLES,
    STROKE_WIDTH,
)
from doc_stacker.controllers import PageViewController
from doc_stacker.errors import DocStackerError, ValidationError
from doc_stacker.layout import norm_box_to_canvas_rect
from doc_stacker.models import FieldType, SignatureRaster
from doc_stacker.operations import LocalDocumentService
from doc_stacker.placement import DragSession
from doc_stacker.sequencer import CaptureMode
from doc_stacker.services import (
    BrowserService,
    DefaultBrowserService,
    DefaultFileDialogs,
    DefaultMessageService,
    DocumentService,
    FileDialogs,
    MessageService,
)
from doc_stacker.workflow import Stage, WorkflowController

logger = logging.getLogger(__name__)

ctk.set_appearance_mode("dark")
ctk.set_default_color_theme("dark-blue")

SOURCE_SLOTS = (
    ("cover", "Cover (required)"),
    ("body", "Body (required)"),
    ("letterhead", "Letterhead (optional)"),
    ("terms", "Terms (optional)"),
    ("stamp", "Stamp image (optional)"),
)


def default_backend() -> DocumentService:
    if BACKEND == "http":
        return HttpDocumentService()
    return LocalDocumentService()


class DocStackerApp(ctk.CTk):
    def __init__(
        self,
        backend: DocumentService | None = None,
        file_dialogs: FileDialogs | None = None,
        messages: MessageService | None = None,
        browser: BrowserService | None = None,
    ) -> None:
        super().__init__()
        self.title(APP_NAME)
        try:
            self.tk.call("tk", "appname", APP_NAME)
        except tk.TclError:
            pass  # platform without appname support
        self.geometry("1000x1100")

        self.file_dialogs = file_dialogs or DefaultFileDialogs()
        self.messages = messages or DefaultMessageService()
        self.browser = browser or DefaultBrowserService()
        self.workflow = WorkflowController(backend or default_backend())
        self.page_view = PageViewController(self.workflow.page_image)

        self.status_var = tk.StringVar(value="Choose the cover and body documents to begin.")
        self._about_window: Optional[ctk.CTkToplevel] = None
        self._render_job: Optional[str] = None
        self._page_photo: Optional[ImageTk.PhotoImage] = None
        self._page_image: Optional[Image.Image] = None
        self._page_image_index: Optional[int] = None
        self._unsubscribe_page = None

        self._selected_signer: Optional[str] = None
        self._signer_choices: Dict[str, str] = {}
        self._drag: Optional[DragSession] = None

        self._freehand = FreehandCapture()
        self._typed = TypedCapture()
        self._signature_preview: Optional[ctk.CTkImage] = None
        self._preview_label: Optional[ctk.CTkLabel] = None

        self._build_ui()
        self._show_stage()

    # Tk helpers --------------------------------------------------------------
    def winfo_exists(self) -> bool:  # type: ignore[override]
        """Return False instead of raising if the Tk app has already been destroyed."""
        try:
            return bool(super().winfo_exists())
        except tk.TclError:
            return False

    def _run(self, action, *args) -> bool:
        """Invoke a workflow action and surface any failure as a dismissible message."""
        try:
            action(*args)
        except ValidationError as exc:
            self.messages.error("Cannot continue", str(exc))
            return False
        except DocStackerError as exc:
            logger.warning("Action %s failed: %s", getattr(action, "__name__", action), exc)
            self.messages.error("Error", f"Something went wrong:\n{exc}")
            return False
        return True

    # UI setup -----------------------------------------------------------------
    def _build_ui(self) -> None:
        self._configure_menu_fonts()
        self._build_menu()

        self.stage_label = ctk.CTkLabel(
            self, text="", font=ctk.CTkFont(size=20, weight="bold"), anchor="w"
        )
        self.stage_label.pack(fill=tk.X, padx=18, pady=(14, 4))

        self.body = ctk.CTkFrame(self, corner_radius=12)
        self.body.pack(fill=tk.BOTH, expand=True, padx=12, pady=(0, 12))

        nav = ctk.CTkFrame(self, fg_color="transparent")
        nav.pack(fill=tk.X, padx=12, pady=(0, 6))
        button_kwargs = {"corner_radius": 8, "height": 36, "width": 150}
        self.back_button = ctk.CTkButton(nav, text="◀ Back", command=self._back, **button_kwargs)
        self.back_button.pack(side=tk.LEFT, padx=6)
        self.next_button = ctk.CTkButton(nav, text="Next ▶", command=self._advance, **button_kwargs)
        self.next_button.pack(side=tk.RIGHT, padx=6)

        status_bar = ctk.CTkFrame(self, fg_color=DEFAULT_STATUS_BG, corner_radius=0)
        status_bar.pack(fill=tk.X)
        ctk.CTkLabel(
            status_bar,
            textvariable=self.status_var,
            anchor="w",
            font=ctk.CTkFont(size=13),
        ).pack(fill=tk.X, padx=10, pady=6)

    def _configure_menu_fonts(self) -> None:
        """Increase Tk's menu font so File/Help entries stay readable on Windows."""
        target_size = 24 if sys.platform.startswith("win") else 12
        try:
            base = tkfont.nametofont("TkMenuFont").copy()
        except tk.TclError:
            base = tkfont.Font(family="Segoe UI", size=target_size)
        if base.cget("size") < target_size:
            base.configure(size=target_size)
        self._menu_font = base
        try:
            self.option_add("*Menu*Font", self._menu_font)
        except tk.TclError:
            pass

    def _build_menu(self) -> None:
        font = getattr(self, "_menu_font", tkfont.Font(size=12))
        menubar = tk.Menu(self, tearoff=0, font=font)
        item_kwargs = {
            "font": font,
            "bg": "#1e1e1e",
            "fg": "#e0e0e0",
            "activebackground": "#2a2a2a",
            "activeforeground": "#ffffff",
            "tearoff": 0,
        }
        file_menu = tk.Menu(menubar, **item_kwargs)
        file_menu.add_command(label="Exit", command=self.destroy, font=font)
        menubar.add_cascade(label="File", menu=file_menu, font=font)
        help_menu = tk.Menu(menubar, **item_kwargs)
        help_menu.add_command(label="About", command=self._show_about, font=font)
        menubar.add_cascade(label="Help", menu=help_menu, font=font)
        self.configure(menu=menubar)

    # Stage switching ------------------------------------------------------------
    def _show_stage(self) -> None:
        self._leave_page_view()
        for child in self.body.winfo_children():
            child.destroy()
        stage = self.workflow.stage
        self.stage_label.configure(
            text=f"Step {stage + 1} of {len(Stage)}: {stage.label}"
        )
        self.back_button.configure(state="normal" if stage > Stage.UPLOAD else "disabled")
        self.next_button.configure(
            state="normal" if stage < Stage.DOWNLOAD else "disabled",
            text="Sign Document" if stage == Stage.SIGN else "Next ▶",
        )
        builders = {
            Stage.UPLOAD: self._build_upload,
            Stage.PLACE_FIELDS: self._build_place_fields,
            Stage.SIGN: self._build_sign,
            Stage.DOWNLOAD: self._build_download,
        }
        builders[stage]()

    def _advance(self) -> None:
        if self._run(self.workflow.advance):
            self._show_stage()

    def _back(self) -> None:
        self.workflow.back()
        self._show_stage()

    # Upload -------------------------------------------------------------------------
    def _build_upload(self) -> None:
        sources = ctk.CTkFrame(self.body, fg_color="transparent")
        sources.pack(fill=tk.X, padx=16, pady=12)
        for row, (slot, label) in enumerate(SOURCE_SLOTS):
            ctk.CTkLabel(sources, text=label, anchor="w", width=200).grid(
                row=row, column=0, sticky="w", pady=4
            )
            current = getattr(self.workflow.session.sources, slot)
            name_label = ctk.CTkLabel(
                sources, text=current.name if current else "Not selected", anchor="w"
            )
            name_label.grid(row=row, column=2, sticky="w", padx=10)
            ctk.CTkButton(
                sources,
                text="Choose...",
                width=110,
                command=lambda s=slot, l=name_label: self._choose_source(s, l),
            ).grid(row=row, column=1, padx=6)

        self.signer_frame = ctk.CTkFrame(self.body, fg_color="transparent")
        self.signer_frame.pack(fill=tk.BOTH, expand=True, padx=16, pady=12)
        self._render_signers()

    def _choose_source(self, slot: str, label: ctk.CTkLabel) -> None:
        if slot == "stamp":
            path = self.file_dialogs.ask_image(self)
        else:
            path = self.file_dialogs.ask_open_pdf(self, title=f"Choose {slot} PDF")
        if not path:
            return
        self.workflow.set_source(slot, path)
        label.configure(text=path.name)

    def _render_signers(self) -> None:
        for child in self.signer_frame.winfo_children():
            child.destroy()
        signers = self.workflow.session.signers
        ctk.CTkLabel(
            self.signer_frame, text="Signers", font=ctk.CTkFont(size=16, weight="bold")
        ).pack(anchor="w")
        for signer in signers:
            row = ctk.CTkFrame(self.signer_frame, fg_color="transparent")
            row.pack(fill=tk.X, pady=3)
            ctk.CTkLabel(row, text="●", text_color=signer.color, width=20).pack(side=tk.LEFT)
            name_var = tk.StringVar(value=signer.name)
            name_var.trace_add(
                "write",
                lambda *_args, s=signer.id, v=name_var: self.workflow.rename_signer(s, v.get()),
            )
            ctk.CTkEntry(row, textvariable=name_var, width=320, placeholder_text="Signer name").pack(
                side=tk.LEFT, padx=6
            )
            ctk.CTkButton(
                row,
                text="Remove",
                width=80,
                state="normal" if len(signers) > 1 else "disabled",
                command=lambda s=signer.id: self._remove_signer(s),
            ).pack(side=tk.LEFT, padx=6)
        ctk.CTkButton(
            self.signer_frame,
            text="Add Signer",
            width=150,
            state="normal" if len(signers) < MAX_SIGNERS else "disabled",
            command=self._add_signer,
        ).pack(anchor="w", pady=8)

    def _add_signer(self) -> None:
        if self._run(self.workflow.add_signer):
            self._render_signers()

    def _remove_signer(self, signer_id: str) -> None:
        if self._run(self.workflow.remove_signer, signer_id):
            self._render_signers()

    # Place fields ------------------------------------------------------------------
    def _build_place_fields(self) -> None:
        signers = self.workflow.session.signers
        if self._selected_signer not in {s.id for s in signers}:
            self._selected_signer = signers[0].id

        toolbar = ctk.CTkFrame(self.body, fg_color="transparent")
        toolbar.pack(fill=tk.X, padx=12, pady=8)
        self._signer_choices = self.workflow.signer_choices()
        self.signer_picker = ctk.CTkSegmentedButton(
            toolbar,
            values=list(self._signer_choices),
            command=self._select_signer,
        )
        for label, signer_id in self._signer_choices.items():
            if signer_id == self._selected_signer:
                self.signer_picker.set(label)
        self.signer_picker.pack(side=tk.LEFT, padx=6)
        for label, field_type in (
            ("Add Signature", FieldType.SIGNATURE),
            ("Add Date", FieldType.DATE),
            ("Add Text", FieldType.TEXT),
        ):
            ctk.CTkButton(
                toolbar,
                text=label,
                width=110,
                command=lambda t=field_type: self._add_field(t),
            ).pack(side=tk.LEFT, padx=4)
        ctk.CTkButton(toolbar, text="Auto-Place All", width=120, command=self._auto_place).pack(
            side=tk.RIGHT, padx=4
        )

        nav = ctk.CTkFrame(self.body, fg_color="transparent")
        nav.pack(fill=tk.X, padx=12)
        ctk.CTkButton(nav, text="◀ Prev", width=90, command=self._prev_page).pack(side=tk.LEFT)
        ctk.CTkButton(nav, text="Next ▶", width=90, command=self._next_page).pack(
            side=tk.LEFT, padx=5
        )
        self.page_label = ctk.CTkLabel(nav, text="", anchor="w")
        self.page_label.pack(side=tk.LEFT, padx=16)

        self.canvas = tk.Canvas(self.body, bg=DEFAULT_CANVAS_BG, highlightthickness=0, bd=0)
        self.canvas.pack(fill=tk.BOTH, expand=True, padx=8, pady=8)
        self.canvas.bind("<Button-1>", self._handle_page_press)
        self.canvas.bind("<Button-3>", self._handle_page_delete)
        self.canvas.bind("<Configure>", self._handle_canvas_resize)

        self.page_view.reset(self.workflow.session.page_count)
        self._page_image = None
        self._page_image_index = None
        self._unsubscribe_page = self.page_view.subscribe(self._on_page_loaded)
        self.status_var.set(
            "Add fields for each signer, drag them into place. Right-click a field to delete it."
        )
        self.after_idle(self._render_page)

    def _leave_page_view(self) -> None:
        self._end_drag()
        if self._unsubscribe_page:
            self._unsubscribe_page()
            self._unsubscribe_page = None
        if self._render_job:
            self.after_cancel(self._render_job)
            self._render_job = None

    def _select_signer(self, label: str) -> None:
        signer_id = self._signer_choices.get(label)
        if signer_id:
            self._selected_signer = signer_id

    def _add_field(self, field_type: FieldType) -> None:
        if self._selected_signer and self._run(
            self.workflow.engine.add_field,
            field_type,
            self._selected_signer,
            self.page_view.page_index,
        ):
            self._draw_fields()

    def _auto_place(self) -> None:
        if len(self.workflow.engine):
            self.messages.info("Auto-place", "Fields have already been placed.")
            return
        session = self.workflow.session
        if self._run(auto_place_fields, self.workflow.engine, session.signers, session.page_count):
            self._draw_fields()

    def _prev_page(self) -> None:
        self._end_drag()
        self.page_view.prev_page()
        self._render_page()

    def _next_page(self) -> None:
        self._end_drag()
        self.page_view.next_page()
        self._render_page()

    def _render_page(self) -> None:
        self._render_job = None
        if not hasattr(self, "canvas") or not self.canvas.winfo_exists():
            return
        page = self.page_view.page_index
        self.page_label.configure(text=f"Page {page + 1} / {self.page_view.page_count}")
        self.canvas.delete("all")
        try:
            if self._page_image is None or self._page_image_index != page:
                self._page_image = self.page_view.load_current()
                self._page_image_index = page
        except (DocStackerError, OSError) as exc:
            self._page_image = None
            self.status_var.set("Unable to load the page image.")
            self.messages.error("Error", f"Unable to load page {page + 1}:\n{exc}")
            return

        canvas_width = max(100, self.canvas.winfo_width())
        canvas_height = max(100, self.canvas.winfo_height())
        image = self._page_image
        scale = min(canvas_width / image.width, canvas_height / image.height)
        scale = max(scale, 0.25)
        shown = image.resize(
            (max(1, int(image.width * scale)), max(1, int(image.height * scale))),
            Image.Resampling.LANCZOS,
        )
        self._page_photo = ImageTk.PhotoImage(shown)
        self.canvas.create_image(0, 0, image=self._page_photo, anchor="nw")
        self.page_view.image_displayed(page, shown.size)

    def _on_page_loaded(self, page_index: int, size) -> None:
        if self._drag:
            self._drag.update_image_size(size)
        self._draw_fields()

    def _draw_fields(self) -> None:
        self.canvas.delete("field")
        size = self.page_view.image_size
        if not size:
            return
        session = self.workflow.session
        for field in self.workflow.engine.fields_on_page(self.page_view.page_index):
            signer = session.signer(field.signer_role)
            color = signer.color if signer else "#1976d2"
            x0, y0, x1, y1 = norm_box_to_canvas_rect(
                (field.x_norm, field.y_norm, field.width_norm, field.height_norm), size
            )
            tags = ("field", f"field:{field.id}")
            self.canvas.create_rectangle(
                x0, y0, x1, y1, outline=color, width=2, dash=(4, 2), tags=tags
            )
            label = field.field_type.value.title()
            if signer:
                label = f"{label}: {signer.name}"
            self.canvas.create_text(
                (x0 + x1) / 2, (y0 + y1) / 2, text=label, fill=color, tags=tags
            )

    def _field_at(self, x: float, y: float) -> Optional[str]:
        for item in reversed(self.canvas.find_overlapping(x, y, x, y)):
            for tag in self.canvas.gettags(item):
                if tag.startswith("field:"):
                    return tag.split(":", 1)[1]
        return None

    def _handle_page_press(self, event: tk.Event) -> None:  # type: ignore[override]
        field_id = self._field_at(event.x, event.y)
        if not field_id:
            return
        drag = self.workflow.engine.begin_drag(
            field_id, (event.x, event.y), self.page_view.image_size
        )
        if drag is None:
            return
        self._drag = drag
        self.canvas.bind("<B1-Motion>", self._drag_move)
        self.canvas.bind("<ButtonRelease-1>", self._drag_release)

    def _drag_move(self, event: tk.Event) -> None:
        if self._drag and self._drag.move((event.x, event.y)):
            self._draw_fields()

    def _drag_release(self, _event: tk.Event) -> None:
        self._end_drag()

    def _end_drag(self) -> None:
        if self._drag:
            self._drag.release()
            self._drag = None
        if hasattr(self, "canvas") and self.canvas.winfo_exists():
            self.canvas.unbind("<B1-Motion>")
            self.canvas.unbind("<ButtonRelease-1>")

    def _handle_page_delete(self, event: tk.Event) -> None:  # type: ignore[override]
        field_id = self._field_at(event.x, event.y)
        if field_id and self.workflow.engine.delete_field(field_id):
            self._draw_fields()

    def _handle_canvas_resize(self, _event: tk.Event) -> None:  # type: ignore[override]
        if self._render_job:
            self.after_cancel(self._render_job)
        self._render_job = self.after(DEFAULT_RENDER_DEBOUNCE_MS, self._render_page)

    # Sign ----------------------------------------------------------------------------
    def _build_sign(self) -> None:
        sequencer = self.workflow.sequencer
        if sequencer is None or sequencer.current is None:
            ctk.CTkLabel(
                self.body,
                text="No signers have been assigned signature fields.\n"
                "Go back and add signature fields.",
            ).pack(pady=40)
            return

        signer = sequencer.current
        done, total = sequencer.progress
        header = ctk.CTkFrame(self.body, fg_color="transparent")
        header.pack(fill=tk.X, padx=16, pady=10)
        ctk.CTkLabel(
            header,
            text=f"{signer.name}  ({sequencer.field_count(signer.id)} signature field(s))",
            text_color=signer.color,
            font=ctk.CTkFont(size=16, weight="bold"),
        ).pack(side=tk.LEFT)
        if sequencer.has_navigation:
            ctk.CTkLabel(header, text=f"{done} of {total} complete").pack(side=tk.RIGHT)

        if not sequencer.is_editing(signer.id):
            self._build_signed_panel(signer.id)
        else:
            self._build_capture_panel(signer.name)

        footer = ctk.CTkFrame(self.body, fg_color="transparent")
        footer.pack(fill=tk.X, padx=16, pady=10)
        if sequencer.has_navigation:
            ctk.CTkButton(
                footer,
                text="◀ Previous Signer",
                state="normal" if sequencer.index > 0 else "disabled",
                command=lambda: self._sequencer_step(sequencer.previous),
            ).pack(side=tk.LEFT, padx=4)
            ctk.CTkButton(
                footer,
                text="Next Signer ▶",
                state="normal" if sequencer.index < total - 1 else "disabled",
                command=lambda: self._sequencer_step(sequencer.next),
            ).pack(side=tk.LEFT, padx=4)
        ctk.CTkButton(
            footer,
            text="Auto-Sign All",
            state="disabled" if sequencer.all_complete else "normal",
            command=lambda: self._sequencer_step(auto_sign_all, sequencer),
        ).pack(side=tk.RIGHT, padx=4)

    def _build_signed_panel(self, signer_id: str) -> None:
        panel = ctk.CTkFrame(self.body)
        panel.pack(fill=tk.X, padx=16, pady=8)
        ctk.CTkLabel(
            panel, text="Signature captured! You can proceed or re-sign if needed."
        ).pack(pady=(10, 4))
        self._show_preview(panel, self.workflow.sequencer.signature_for(signer_id))
        ctk.CTkButton(
            panel,
            text="Re-sign",
            width=100,
            command=lambda: self._sequencer_step(self.workflow.sequencer.resign, signer_id),
        ).pack(pady=(4, 10))

    def _build_capture_panel(self, signer_name: str) -> None:
        sequencer = self.workflow.sequencer
        panel = ctk.CTkFrame(self.body)
        panel.pack(fill=tk.BOTH, expand=True, padx=16, pady=8)
        mode = ctk.CTkSegmentedButton(
            panel,
            values=["Draw", "Type"],
            command=lambda value: self._sequencer_step(
                sequencer.switch_mode, CaptureMode(value.lower())
            ),
        )
        mode.set(sequencer.mode.value.title())
        mode.pack(pady=8)

        if sequencer.mode == CaptureMode.DRAW:
            self._freehand.clear()
            pad = tk.Canvas(
                panel,
                width=CAPTURE_SIZE[0],
                height=CAPTURE_SIZE[1],
                bg="#fafafa",
                highlightthickness=1,
                cursor="crosshair",
            )
            pad.pack(pady=6)
            pad.bind("<ButtonPress-1>", lambda e: self._freehand.pointer_down(e.x, e.y))
            pad.bind("<B1-Motion>", lambda e: self._pad_move(pad, e))
            pad.bind("<ButtonRelease-1>", lambda _e: self._pad_release())
            ctk.CTkButton(panel, text="Clear", width=80, command=lambda: self._pad_clear(pad)).pack()
        else:
            self._typed = TypedCapture(signer_name, self._typed.style)
            name_var = tk.StringVar(value=signer_name)
            ctk.CTkEntry(panel, textvariable=name_var, width=360).pack(pady=6)
            style_var = tk.StringVar(value=self._typed.style or DEFAULT_SIGNATURE_STYLE)
            ctk.CTkOptionMenu(
                panel,
                values=list(SIGNATURE_STYLES),
                variable=style_var,
                command=lambda style: self._typed_changed(self._typed.set_style(style)),
            ).pack(pady=6)
            name_var.trace_add(
                "write", lambda *_a: self._typed_changed(self._typed.set_name(name_var.get()))
            )
            self._typed_changed(self._typed.raster)

        self.preview_frame = ctk.CTkFrame(panel, fg_color="transparent")
        self.preview_frame.pack(pady=6)
        self._show_preview(self.preview_frame, sequencer.signature_for(sequencer.current.id))

    def _pad_move(self, pad: tk.Canvas, event: tk.Event) -> None:
        stroke = self._freehand
        if not stroke.is_drawing:
            return
        last = stroke.last_point
        stroke.pointer_move(event.x, event.y)
        if last:
            pad.create_line(
                *last,
                event.x,
                event.y,
                width=STROKE_WIDTH,
                capstyle=tk.ROUND,
                joinstyle=tk.ROUND,
            )

    def _pad_release(self) -> None:
        raster = self._freehand.pointer_up()
        if raster is not None:
            self._capture(raster)

    def _pad_clear(self, pad: tk.Canvas) -> None:
        pad.delete("all")
        self._freehand.clear()
        self._capture(None)

    def _typed_changed(self, raster: Optional[SignatureRaster]) -> None:
        self._capture(raster)

    def _capture(self, raster: Optional[SignatureRaster]) -> None:
        sequencer = self.workflow.sequencer
        if sequencer is None or not self._run(sequencer.capture, raster):
            return
        if hasattr(self, "preview_frame") and self.preview_frame.winfo_exists():
            self._show_preview(self.preview_frame, raster)

    def _show_preview(self, parent, raster: Optional[SignatureRaster]) -> None:
        if self._preview_label is not None and self._preview_label.winfo_exists():
            self._preview_label.destroy()
        self._preview_label = None
        if raster is None:
            return
        with Image.open(io.BytesIO(raster)) as image:
            preview = image.convert("RGBA")
        background = Image.new("RGBA", preview.size, (250, 250, 250, 255))
        background.alpha_composite(preview)
        self._signature_preview = ctk.CTkImage(
            light_image=background,
            dark_image=background,
            size=(preview.width // 2, preview.height // 2),
        )
        self._preview_label = ctk.CTkLabel(parent, text="", image=self._signature_preview)
        self._preview_label.pack(pady=4)

    def _sequencer_step(self, action, *args) -> None:
        if self._run(action, *args):
            self._show_stage()

    # Download ---------------------------------------------------------------------
    def _build_download(self) -> None:
        panel = ctk.CTkFrame(self.body, fg_color="transparent")
        panel.pack(pady=40)
        finalized = bool(self.workflow.session.final_document_id)
        ctk.CTkLabel(
            panel,
            text="Document finalized and ready to download."
            if finalized
            else "All signatures applied. Finalize to flatten the document.",
            font=ctk.CTkFont(size=15),
        ).pack(pady=10)
        buttons: List[tuple] = [
            ("Finalize", self._finalize, "disabled" if finalized else "normal"),
            ("Download", self._open_download, "normal"),
            ("Preview", self._open_preview, "normal"),
        ]
        for text, command, state in buttons:
            ctk.CTkButton(panel, text=text, width=160, state=state, command=command).pack(pady=6)

    def _finalize(self) -> None:
        if self._run(self.workflow.finalize_document):
            self.status_var.set("Document finalized.")
            self._show_stage()

    def _open_download(self) -> None:
        self._open_url(self.workflow.download_url())

    def _open_preview(self) -> None:
        self._open_url(self.workflow.preview_url())

    def _open_url(self, url: str) -> None:
        if not self.browser.open(url):
            self.messages.error(
                "Unable to open link",
                f"Could not launch your browser. Open this location manually:\n{url}",
            )

    # Help menu --------------------------------------------------------------
    def _show_about(self) -> None:
        if self._about_window and self._about_window.winfo_exists():
            self._about_window.lift()
            self._about_window.focus_force()
            return

        about = ctk.CTkToplevel(self)
        about.title("About")
        about.geometry("440x260")
        about.resizable(False, False)
        about.transient(self)
        self._about_window = about

        heading_font = ctk.CTkFont(size=20, weight="bold")
        ctk.CTkLabel(about, text=APP_NAME, font=heading_font).pack(pady=(18, 6))
        ctk.CTkLabel(about, text=f"Version {APP_VERSION}").pack()
        ctk.CTkLabel(about, text=f"Developer: {APP_AUTHOR}").pack(pady=(2, 12))
        ctk.CTkLabel(
            about,
            text=APP_DESCRIPTION,
            wraplength=380,
            justify="center",
        ).pack(padx=16, pady=(0, 16))

        def handle_close() -> None:
            self._about_window = None
            about.destroy()

        ctk.CTkButton(about, text="Close", command=handle_close, width=100).pack(
            pady=(4, 16)
        )
        about.protocol("WM_DELETE_WINDOW", handle_close)


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = DocStackerApp()
    app.mainloop()


if __name__ == "__main__":
    main()
