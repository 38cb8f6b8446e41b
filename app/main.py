"""
Streamlit Frontend for ResiboKo

This is the user interface people use every day to keep track of
where their pesos go.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is saved
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

The UI enforces the human-in-the-loop principle:
- User sees what the AI read from the receipt
- User confirms or edits
- Nothing is saved without an explicit "Save" action

Receipts shown anywhere in the app come from one place: the live
snapshot that the record store pushes into this session.
"""

import asyncio
import hashlib
import html
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st

from resiboko.audit import create_correlation_id
from resiboko.capture import DeviceSession, blob_from_audio_bytes, blob_from_image_bytes
from resiboko.config import get_settings, validate_all_settings
from resiboko.errors import (
    CaptureError,
    ExtractionError,
    IncompleteRecordError,
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    SyncError,
)
from resiboko.guards import ActionGuard
from resiboko.history import format_amount
from resiboko.models.receipt import (
    AuthenticatedUser,
    CaptureSource,
    PeriodFilter,
    ReceiptData,
    SavedReceipt,
    SyncStatus,
    TransactionCategory,
)
from resiboko.orchestrator import (
    HistoryFlow,
    InsightsFlow,
    ReceiptCaptureFlow,
    create_app_components,
    manual_entry_defaults,
)
from resiboko.services.sync import SheetSyncBridge


# Page configuration
st.set_page_config(
    page_title="ResiboKo",
    page_icon="🧾",
    layout="centered",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


SYNC_BUTTON_TEXT = {
    SyncStatus.IDLE: "🔄 Sync to Google Sheets",
    SyncStatus.SYNCING: "Syncing...",
    SyncStatus.SYNCED: "✅ Synced Successfully!",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached, shared by all sessions)."""
    return create_app_components()


class ReceiptSnapshot:
    """
    This session's copy of the live record set.

    The store calls replace() with the complete list; it is never
    patched locally.
    """

    def __init__(self):
        self.records: list[SavedReceipt] = []

    def replace(self, records: list[SavedReceipt]) -> None:
        self.records = records


def money(amount: Optional[Decimal]) -> str:
    symbol = get_settings().app.currency_symbol
    return f"{symbol}{(amount or Decimal('0')):,.2f}"


def current_user() -> Optional[AuthenticatedUser]:
    """
    The signed-in user, from Streamlit's OIDC login.

    With the in-memory backend a fixed local user is used so the app
    can be tried without an identity provider.
    """
    if st.user.is_logged_in:
        uid = st.user.get("sub") or st.user.get("email")
        if uid:
            return AuthenticatedUser(
                uid=str(uid),
                display_name=st.user.get("name"),
                email=st.user.get("email"),
            )
    if get_settings().app.storage_backend == "memory":
        return AuthenticatedUser(uid="local", display_name="Local user")
    return None


def init_session_state():
    defaults = {
        "snapshot": ReceiptSnapshot,
        "subscription": lambda: None,
        "ai_guard": lambda: ActionGuard("ai"),
        "scan_state": lambda: "idle",  # idle, processing, reviewing, saved, failed
        "scan_candidate": lambda: None,
        "scan_error": lambda: None,
        "scan_blob": lambda: None,
        "saved_receipt": lambda: None,
        "camera_session": lambda: None,
        "manual_form": lambda: manual_entry_defaults(date.today()),
        "manual_version": lambda: 0,
        "last_audio_digest": lambda: None,
        "editing_id": lambda: None,
        "insight_answer": lambda: None,
        "leak_report": lambda: None,
        "sync_bridge": lambda: None,
    }
    for key, factory in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = factory()


def ensure_subscription(user: Optional[AuthenticatedUser], capture_flow: ReceiptCaptureFlow):
    """Keep exactly one live subscription, for the current user."""
    subscription = st.session_state.subscription

    if subscription is not None and (user is None or subscription.user_id != user.uid):
        subscription.unsubscribe()
        st.session_state.subscription = None
        st.session_state.snapshot.replace([])
        subscription = None

    if user is not None and subscription is None:
        try:
            st.session_state.subscription = run_async(
                capture_flow.record_store.subscribe(user, st.session_state.snapshot.replace)
            )
        except StorageError as e:
            st.error(f"Could not load your receipts: {e}")


def get_sync_bridge() -> Optional[SheetSyncBridge]:
    """One bridge per session; None when the webhook is not configured."""
    if st.session_state.sync_bridge is None:
        try:
            st.session_state.sync_bridge = SheetSyncBridge()
        except Exception:
            return None
    return st.session_state.sync_bridge


def main():
    """Main application entry point."""
    init_session_state()
    capture_flow, insights_flow, history_flow, _ = get_components()

    user = current_user()
    ensure_subscription(user, capture_flow)

    # Sidebar navigation
    st.sidebar.title("🧾 ResiboKo")
    if user is not None:
        st.sidebar.caption(f"Signed in as {user.display_name or user.email or user.uid}")
        if st.user.is_logged_in and st.sidebar.button("Log out"):
            st.logout()
    else:
        if st.sidebar.button("Log in with Google", type="primary"):
            st.login()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📸 Scan Receipt", "✍️ Manual Entry", "📊 History", "💡 AI Insights", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Scan a receipt or say what you spent
        2. Review the details
        3. Save

        **Ask questions like:**
        - "How much did I spend on food this week?"
        - "Where can I save money?"
        """
    )

    # Route to appropriate page
    if page == "📸 Scan Receipt":
        render_scan_page(capture_flow, user)
    elif page == "✍️ Manual Entry":
        render_manual_page(capture_flow, user)
    elif page == "📊 History":
        render_history_page(capture_flow, history_flow, user)
    elif page == "💡 AI Insights":
        render_insights_page(insights_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def reset_scan():
    st.session_state.ai_guard.invalidate()
    st.session_state.scan_state = "idle"
    st.session_state.scan_candidate = None
    st.session_state.scan_error = None
    st.session_state.scan_blob = None
    st.session_state.correlation_id = None


def render_receipt_fields(candidate: ReceiptData, key: str) -> ReceiptData:
    """The four editable fields. Returns the form's current values."""
    categories = list(TransactionCategory)

    name = st.text_input(
        "Transaction *",
        value=candidate.transaction_name or "",
        key=f"{key}_name",
        help="Store or what you paid for",
    )
    amount = st.number_input(
        f"Total Amount ({get_settings().app.currency_symbol}) *",
        value=float(candidate.total_amount) if candidate.total_amount is not None else None,
        min_value=0.0,
        step=1.0,
        format="%.2f",
        key=f"{key}_amount",
    )
    transaction_date = st.date_input(
        "Date *",
        value=candidate.parsed_date,
        key=f"{key}_date",
    )
    category = st.selectbox(
        "Category *",
        options=categories,
        index=categories.index(candidate.category) if candidate.category else None,
        format_func=lambda c: c.value,
        placeholder="Choose a category",
        key=f"{key}_category",
    )

    return ReceiptData(
        transaction_name=name or None,
        total_amount=Decimal(str(round(amount, 2))) if amount is not None else None,
        transaction_date=transaction_date.isoformat() if transaction_date else None,
        category=category,
    )


def save_candidate(capture_flow: ReceiptCaptureFlow, user, candidate: ReceiptData) -> Optional[SavedReceipt]:
    """Save and translate failures into messages. Returns None on failure."""
    try:
        return run_async(
            capture_flow.confirm_and_save(
                user,
                candidate,
                correlation_id=st.session_state.get("correlation_id"),
            )
        )
    except (NotAuthenticatedError, IncompleteRecordError) as e:
        st.error(str(e))
    except StorageError:
        st.error("Failed to save the receipt. Please try again.")
    return None


def render_scan_page(capture_flow: ReceiptCaptureFlow, user):
    """Render the receipt scanning page."""
    st.title("📸 Scan Receipt")
    st.markdown("Upload a photo of your receipt or use your camera.")
    settings = get_settings().app

    # Step 1: Capture
    if st.session_state.scan_state == "idle":
        upload_tab, camera_tab = st.tabs(["📁 Upload", "📷 Camera"])

        with upload_tab:
            uploaded_file = st.file_uploader(
                "Choose a receipt photo",
                type=settings.supported_formats_list,
                help="Take a clear, well-lit photo of the whole receipt",
            )
            if uploaded_file and st.button("🔍 Analyze Receipt", type="primary"):
                try:
                    st.session_state.scan_blob = blob_from_image_bytes(
                        uploaded_file.getvalue(),
                        source=CaptureSource.UPLOAD,
                        filename=uploaded_file.name,
                    )
                    st.session_state.scan_state = "processing"
                    st.rerun()
                except CaptureError as e:
                    capture_flow.record_capture_failure(CaptureSource.UPLOAD, str(e))
                    st.error(str(e))

        with camera_tab:
            render_camera(capture_flow, settings)

    # Step 2: Processing
    if st.session_state.scan_state == "processing":
        st.session_state.correlation_id = create_correlation_id()
        with st.spinner("Analyzing your receipt..."):
            try:
                candidate = run_async(
                    st.session_state.ai_guard.run(
                        lambda: capture_flow.extract_from_image(
                            st.session_state.scan_blob,
                            correlation_id=st.session_state.correlation_id,
                        )
                    )
                )
            except ExtractionError as e:
                st.session_state.scan_error = str(e)
                st.session_state.scan_state = "failed"
                st.rerun()
            except Exception as e:
                # Never leave the page in "processing": each rerun would call the AI again
                st.session_state.scan_error = f"Unexpected error: {e}"
                st.session_state.scan_state = "failed"
                st.rerun()

        if candidate is None:
            # Another analysis was still running, or this one went stale
            st.session_state.scan_state = "idle"
        else:
            st.session_state.scan_candidate = candidate
            st.session_state.scan_state = "reviewing"
        st.rerun()

    # Failure: Try Again
    if st.session_state.scan_state == "failed":
        st.markdown(f"""
        <div class="error-box">
            <h4>❌ Analysis Failed</h4>
            <p>{html.escape(str(st.session_state.scan_error))}</p>
        </div>
        """, unsafe_allow_html=True)
        if st.button("🔁 Try Again", type="primary"):
            reset_scan()
            st.rerun()

    # Step 3: Review and Confirm
    if st.session_state.scan_state == "reviewing":
        candidate = st.session_state.scan_candidate

        st.markdown("---")
        st.subheader("📋 Review Receipt")
        st.markdown("*You can edit any field before saving*")

        if st.session_state.scan_blob is not None:
            with st.expander("📷 View Receipt Photo"):
                st.image(st.session_state.scan_blob.data, width=400)

        edited = render_receipt_fields(candidate, key="scan")
        summary = capture_flow.validator.validate(edited)
        if summary.issues:
            st.info(capture_flow.validator.get_user_friendly_summary(summary))

        col1, col2 = st.columns(2)
        with col1:
            if st.button("✅ Save Receipt", type="primary"):
                saved = save_candidate(capture_flow, user, edited)
                if saved is not None:
                    st.session_state.saved_receipt = saved
                    st.session_state.scan_state = "saved"
                    st.rerun()
        with col2:
            if st.button("❌ Discard"):
                capture_flow.discard(correlation_id=st.session_state.correlation_id)
                reset_scan()
                st.rerun()

    # Step 4: Success
    if st.session_state.scan_state == "saved":
        receipt = st.session_state.saved_receipt

        st.markdown(f"""
        <div class="success-box">
            <h3>✅ Receipt Saved!</h3>
            <p><strong>Transaction:</strong> {html.escape(receipt.transaction_name)}</p>
            <p><strong>Amount:</strong> {money(receipt.total_amount)}</p>
            <p><strong>Category:</strong> {html.escape(receipt.category.value)}</p>
            <p><strong>Date:</strong> {receipt.parsed_date.strftime('%B %d, %Y')}</p>
        </div>
        """, unsafe_allow_html=True)

        if st.button("📸 Scan Another Receipt"):
            reset_scan()
            st.session_state.saved_receipt = None
            st.rerun()


def _open_camera():
    st.session_state.camera_open = True
    return "camera"


def _close_camera(_handle):
    st.session_state.camera_open = False


def render_camera(capture_flow: ReceiptCaptureFlow, settings):
    """Camera snapshot inside a scoped device session."""
    camera = st.session_state.camera_session
    if camera is None:
        camera = DeviceSession(CaptureSource.CAMERA, _open_camera, _close_camera)
        st.session_state.camera_session = camera

    if not camera.is_open:
        if st.button("📷 Open Camera"):
            try:
                camera.open()
            except CaptureError as e:
                capture_flow.record_capture_failure(CaptureSource.CAMERA, str(e))
                st.error(f"Camera Error: {e}")
            st.rerun()
        return

    snapshot = st.camera_input("Point your camera at the receipt")
    if st.button("Close Camera"):
        camera.close()
        st.rerun()

    if snapshot is not None:
        try:
            blob = blob_from_image_bytes(
                snapshot.getvalue(),
                source=CaptureSource.CAMERA,
                filename="camera.jpg",
                settings=settings,
            )
        except CaptureError as e:
            camera.close()
            capture_flow.record_capture_failure(CaptureSource.CAMERA, str(e))
            st.error(f"Camera Error: {e}")
            return
        camera.close()
        st.session_state.scan_blob = blob
        st.session_state.scan_state = "processing"
        st.rerun()


def render_manual_page(capture_flow: ReceiptCaptureFlow, user):
    """Render the manual / voice entry page."""
    st.title("✍️ Manual Entry")
    st.markdown("Type the details, or record a voice note like *\"Jeepney fare, 15 pesos, today\"*.")

    recording = st.audio_input("🎤 Record a voice note")
    if recording is not None:
        data = recording.getvalue()
        digest = hashlib.sha256(data).hexdigest()
        if digest != st.session_state.last_audio_digest:
            st.session_state.last_audio_digest = digest
            with st.spinner("Listening..."):
                try:
                    blob = blob_from_audio_bytes(data, recording.type, filename=recording.name)
                    merged = run_async(
                        st.session_state.ai_guard.run(
                            lambda: capture_flow.extract_from_voice(
                                blob,
                                current=st.session_state.manual_form,
                            )
                        )
                    )
                except CaptureError as e:
                    capture_flow.record_capture_failure(CaptureSource.MICROPHONE, str(e))
                    st.error(str(e))
                    merged = None
                except ExtractionError as e:
                    st.error(f"Could not understand the recording: {e}")
                    merged = None
            if merged is not None:
                st.session_state.manual_form = merged
                # New widget keys so the form shows the merged values
                st.session_state.manual_version += 1
                st.rerun()

    st.markdown("---")
    edited = render_receipt_fields(
        st.session_state.manual_form,
        key=f"manual_{st.session_state.manual_version}",
    )

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Save Transaction", type="primary"):
            st.session_state.correlation_id = create_correlation_id()
            saved = save_candidate(capture_flow, user, edited)
            if saved is not None:
                st.success(f"Saved {saved.transaction_name} ({money(saved.total_amount)}).")
                st.session_state.manual_form = manual_entry_defaults(date.today())
                st.session_state.manual_version += 1
    with col2:
        if st.button("🧹 Clear"):
            capture_flow.discard()
            st.session_state.manual_form = manual_entry_defaults(date.today())
            st.session_state.manual_version += 1
            st.rerun()


def render_history_page(capture_flow: ReceiptCaptureFlow, history_flow: HistoryFlow, user):
    """Render the transaction history page."""
    st.title("📊 History")

    if user is None:
        st.info("Log in to see your saved receipts.")
        return

    if st.button("🔄 Refresh"):
        try:
            run_async(capture_flow.record_store.refresh(user))
        except StorageError as e:
            st.error(f"Could not refresh: {e}")

    period = st.radio(
        "Period",
        options=list(PeriodFilter),
        format_func=lambda p: p.value,
        horizontal=True,
        index=list(PeriodFilter).index(PeriodFilter.ALL),
    )

    records = st.session_state.snapshot.records
    view = history_flow.view(records, period)

    st.subheader(view.title)

    col1, col2 = st.columns(2)
    with col1:
        filename, csv_text = history_flow.export(view)
        st.download_button(
            "⬇️ Download CSV",
            data=csv_text,
            file_name=filename,
            mime="text/csv",
            on_click=history_flow.record_export,
            args=(view, filename),
            disabled=view.is_empty,
        )
    with col2:
        render_sync_button(history_flow, user, records)

    if view.is_empty:
        st.info("No transactions for this period yet.")
        return

    if view.is_summary:
        for row in view.summary:
            c1, c2 = st.columns([3, 2])
            c1.markdown(f"**{row.category}**")
            c2.markdown(money(row.total))
        st.markdown("---")
        st.markdown(f'<div class="big-number">{money(view.grand_total)}</div>', unsafe_allow_html=True)
        return

    for record in view.records:
        render_saved_record(capture_flow, user, record)


def render_saved_record(capture_flow: ReceiptCaptureFlow, user, record: SavedReceipt):
    """One row of the All view, with edit and delete."""
    label = record.category.value if record.category else "Uncategorized"
    c1, c2, c3, c4 = st.columns([4, 2, 1, 1])
    c1.markdown(f"**{record.transaction_name or 'N/A'}**  \n{record.transaction_date or 'N/A'} · {label}")
    c2.markdown(money(record.total_amount))

    if c3.button("✏️", key=f"edit_{record.id}", help="Edit"):
        st.session_state.editing_id = record.id
    if c4.button("🗑️", key=f"delete_{record.id}", help="Delete"):
        try:
            run_async(capture_flow.delete(user, record.id))
            st.rerun()
        except NotAuthenticatedError as e:
            st.error(str(e))
        except NotFoundError:
            st.warning("That receipt was already deleted.")
        except StorageError:
            st.error("Failed to delete the receipt. Please try again.")

    if st.session_state.editing_id == record.id:
        with st.container(border=True):
            edited = render_receipt_fields(record, key=f"edit_{record.id}")
            e1, e2 = st.columns(2)
            if e1.button("💾 Save Changes", key=f"save_{record.id}", type="primary"):
                try:
                    run_async(capture_flow.update_saved(user, record.id, edited))
                    st.session_state.editing_id = None
                    st.rerun()
                except (NotAuthenticatedError, IncompleteRecordError) as e:
                    st.error(str(e))
                except StorageError:
                    st.error("Failed to update the receipt. Please try again.")
            if e2.button("Cancel", key=f"cancel_{record.id}"):
                st.session_state.editing_id = None
                st.rerun()


def render_sync_button(history_flow: HistoryFlow, user, records: list[SavedReceipt]):
    bridge = get_sync_bridge()
    if bridge is None:
        st.button(SYNC_BUTTON_TEXT[SyncStatus.IDLE], disabled=True, help="Set SYNC_WEBHOOK_URL to enable")
        return

    status = bridge.status
    if st.button(SYNC_BUTTON_TEXT[status], disabled=status != SyncStatus.IDLE or not records):
        with st.spinner(SYNC_BUTTON_TEXT[SyncStatus.SYNCING]):
            try:
                run_async(history_flow.sync(bridge, user, records))
                st.rerun()
            except NotAuthenticatedError as e:
                st.error(str(e))
            except SyncError:
                st.error("Syncing failed. Please check your connection and try again.")


def render_insights_page(insights_flow: InsightsFlow):
    """Render the AI insights page."""
    st.title("💡 AI Insights")
    records = st.session_state.snapshot.records

    if not records:
        st.info("Save a few receipts first, then ask me anything about your spending.")

    question = st.text_input(
        "Your question:",
        placeholder="e.g., How much did I spend on food this month?",
    )

    if st.button("🔍 Ask", type="primary", disabled=not records):
        with st.spinner("Thinking..."):
            try:
                answer = run_async(
                    st.session_state.ai_guard.run(
                        lambda: insights_flow.ask(records, question)
                    )
                )
                if answer is not None:
                    st.session_state.insight_answer = answer
            except ExtractionError as e:
                st.error(f"Sorry, I couldn't answer that: {e}")

    if st.session_state.insight_answer:
        st.markdown(st.session_state.insight_answer)

    st.markdown("---")
    st.subheader("💸 Cash Leaks")
    st.markdown("Find small, repeated expenses that quietly add up.")

    if st.button("🔎 Find Cash Leaks"):
        with st.spinner("Looking for tipid opportunities..."):
            try:
                report = run_async(
                    st.session_state.ai_guard.run(
                        lambda: insights_flow.find_cash_leaks(records)
                    )
                )
                if report is not None:
                    st.session_state.leak_report = report
            except ExtractionError as e:
                st.error(f"Analysis failed: {e}")

    if st.session_state.leak_report:
        st.markdown(st.session_state.leak_report)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (AI)", "gemini"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Spreadsheet Sync (Webhook)", "sync"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
