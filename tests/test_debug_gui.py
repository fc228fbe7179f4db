import asyncio
import json

from pathease.debug_gui import DEBUG_GUI_HTML, DebugServer, WebSocketPositionSource
from pathease.models import Coordinate


def test_map_click_becomes_a_location():
    server = DebugServer(open_browser=False)
    server.handle_message(json.dumps({"type": "location", "data": {"lat": 19.07, "lng": 72.87}}))
    assert server.get_clicked_location(timeout=0.1) == Coordinate(19.07, 72.87)
    assert server.get_clicked_location(timeout=0.01) is None


def test_buttons_become_commands():
    server = DebugServer(open_browser=False)
    server.handle_message(json.dumps({"type": "command", "data": {"text": "yes"}}))
    server.handle_message(json.dumps({"type": "command", "data": {"text": "pause"}}))
    assert server.pending_commands() == ["yes", "pause"]
    assert server.pending_commands() == []


def test_bad_messages_are_ignored():
    server = DebugServer(open_browser=False)
    server.handle_message("{not json")
    server.handle_message(json.dumps({"type": "location", "data": {"lat": 200, "lng": 0}}))
    server.handle_message(json.dumps({"type": "command", "data": {}}))
    assert server.location_queue.empty()
    assert server.command_queue.empty()


def test_sends_are_dropped_without_clients():
    server = DebugServer(open_browser=False)
    server.send_state({"status": "idle"})
    server.send_itinerary({"title": "Trip", "itinerary": [{"stops": [{"name": "A", "lat": 1, "lng": 2}]}]})


def test_websocket_source_yields_clicks():
    server = DebugServer(open_browser=False)
    server.location_queue.put(Coordinate(19.07, 72.87))

    async def main():
        source = WebSocketPositionSource(server, wait=0.05)
        updates = []
        handle = source.start_watching(updates.append, lambda e: None)
        await asyncio.sleep(0.2)
        source.stop_watching(handle)
        return updates

    assert asyncio.run(main()) == [Coordinate(19.07, 72.87)]


def test_page_has_websocket_placeholder():
    assert "{{WS_PORT}}" in DEBUG_GUI_HTML
