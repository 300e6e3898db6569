"""NiceGUI chat interface with streaming responses and a metrics panel."""

from datetime import datetime

from nicegui import Client, ui

from chatstream.client.session import StreamingChatSession
from chatstream.hardware.cache import get_metrics_cache
from chatstream.hardware.config import get_hardware_config
from chatstream.hardware.poller import HardwareMetricsPoller
from chatstream.models import ChatMessage, SessionState
from chatstream.models.schemas import HardwareMetricsSnapshot
from chatstream.ui import get_ui_port


def render_message(msg: ChatMessage) -> None:
    is_user = msg.role == "user"
    with ui.row().classes(f"w-full {'justify-end' if is_user else 'justify-start'}"):
        with ui.column().classes("max-w-[70%] gap-1"):
            bubble = "bg-indigo-500 text-white" if is_user else "bg-white text-gray-800 border"
            with ui.element("div").classes(f"{bubble} rounded-2xl px-4 py-3"):
                if is_user:
                    ui.label(msg.content).classes("text-sm whitespace-pre-wrap")
                else:
                    ui.markdown(msg.content or "…").classes("text-sm")
            if msg.sources:
                with ui.row().classes("gap-1"):
                    for source in msg.sources:
                        ui.chip(source, icon="description").props("dense outline")


METRIC_FIELDS = [
    ("gpu_utilization", "GPU", "%"),
    ("gpu_memory_usage", "Memory", "%"),
    ("tokens_per_second", "Tokens/s", ""),
    ("latency", "Latency", " ms"),
    ("temperature", "Temp", "°C"),
]


def render_metrics_panel() -> dict[str, ui.label]:
    """Build the hardware panel and return its value labels by field name."""
    labels: dict[str, ui.label] = {}
    with ui.row().classes("w-full px-5 py-2 gap-6 bg-gray-100 text-xs text-gray-600"):
        for name, title, unit in METRIC_FIELDS:
            with ui.column().classes("gap-0"):
                ui.label(title).classes("uppercase tracking-wide")
                labels[name] = ui.label(f"0{unit}").classes("font-mono text-sm")
        labels["inference_active"] = ui.label("Idle").classes("self-center font-semibold")
    return labels


@ui.page("/")
async def chat_page(client: Client) -> None:
    messages_container: ui.column

    def refresh_messages(_: ChatMessage | None = None) -> None:
        messages_container.clear()
        with messages_container:
            if not session.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    ui.label("Start a conversation").classes("text-lg text-gray-400")
            for msg in session.messages:
                render_message(msg)

    session = StreamingChatSession(on_update=refresh_messages)

    def show_metrics(snapshot: HardwareMetricsSnapshot) -> None:
        for name, _, unit in METRIC_FIELDS:
            metric_labels[name].set_text(f"{getattr(snapshot, name):.1f}{unit}")
        metric_labels["inference_active"].set_text(
            "Processing" if snapshot.inference_active else "Idle"
        )

    async def send_message() -> None:
        text = input_field.value or ""
        if not text.strip() or session.in_flight:
            return

        input_field.value = ""
        send_btn.disable()
        started = datetime.now()
        try:
            await session.send(text, rag=rag_switch.value)
        finally:
            if not session.closed:
                send_btn.enable()
                refresh_messages()
                if session.state is SessionState.ERRORED:
                    ui.notify(session.last_error, type="negative")
                elif session.state is SessionState.COMPLETED:
                    elapsed = (datetime.now() - started).total_seconds()
                    status_label.set_text(f"Answered in {elapsed:.1f}s")

    # === UI Layout ===
    with ui.column().classes("w-full max-w-3xl mx-auto h-screen p-4 gap-0"):
        with ui.row().classes("w-full px-5 py-4 items-center justify-between bg-indigo-600 rounded-t-xl"):
            ui.label("Local Model Chat").classes("text-lg font-semibold text-white")
            rag_switch = ui.switch("Documents", value=True).props("color=white dark")
        metric_labels = render_metrics_panel()

        with ui.scroll_area().classes("flex-grow w-full bg-gray-50"):
            messages_container = ui.column().classes("w-full p-5 gap-4")
            refresh_messages()

        with ui.row().classes("w-full p-4 gap-3 items-end bg-white border-t rounded-b-xl"):
            input_field = (
                ui.textarea(placeholder="Type a message...")
                .props("autogrow borderless dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated")
        status_label = ui.label("").classes("text-[10px] text-gray-400 px-4")

    poller = HardwareMetricsPoller(
        get_metrics_cache(),
        show_metrics,
        interval=get_hardware_config().poll_interval,
    )

    async def teardown() -> None:
        await poller.stop()
        await session.aclose()

    client.on_disconnect(teardown)
    await client.connected()
    poller.start()


def main() -> None:
    ui.run(title="Local Model Chat", port=get_ui_port(), reload=False)


if __name__ == "__main__":
    main()
