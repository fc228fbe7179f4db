"""Debug GUI server for PathEase."""

import asyncio
import http.server
import json
import queue
import socketserver
import threading
import time
import webbrowser
from functools import partial
from typing import Optional

from .models import Coordinate
from .gps import PositionSource


# HTML template for the debug GUI
DEBUG_GUI_HTML = '''<!DOCTYPE html>
<html>
<head>
    <title>PathEase Debug GUI</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; height: 100vh; display: flex; flex-direction: column; }
        header { background: #1e293b; color: white; padding: 12px 20px; display: flex; justify-content: space-between; align-items: center; }
        header h1 { font-size: 18px; font-weight: 600; }
        .status-badge { background: #22c55e; padding: 4px 12px; border-radius: 12px; font-size: 12px; }
        .status-badge.disconnected { background: #ef4444; }
        .main-content { display: flex; flex: 1; overflow: hidden; }
        #map { flex: 1; min-width: 0; }
        .debug-panel { width: 400px; background: #f8fafc; display: flex; flex-direction: column; border-left: 1px solid #e2e8f0; }
        .panel-section { padding: 16px; border-bottom: 1px solid #e2e8f0; }
        .panel-section h2 { font-size: 12px; text-transform: uppercase; color: #64748b; margin-bottom: 12px; letter-spacing: 0.5px; }
        .state-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
        .state-item { background: white; padding: 10px; border-radius: 6px; border: 1px solid #e2e8f0; }
        .state-label { font-size: 11px; color: #64748b; margin-bottom: 4px; }
        .state-value { font-size: 16px; font-weight: 600; color: #1e293b; }
        .controls button { margin: 2px; padding: 6px 12px; border: 1px solid #cbd5e1; border-radius: 6px; background: white; cursor: pointer; }
        .prompt-text { font-size: 14px; color: #1e3a8a; margin-bottom: 8px; min-height: 20px; }
        .logs-section { flex: 1; display: flex; flex-direction: column; min-height: 0; }
        .logs-container { flex: 1; overflow-y: auto; padding: 12px; background: #1e293b; font-family: "SF Mono", Monaco, monospace; font-size: 12px; }
        .log-entry { color: #94a3b8; margin-bottom: 6px; line-height: 1.4; }
        .log-entry .timestamp { color: #64748b; }
        .log-entry .message { color: #e2e8f0; }
        .log-entry .data { color: #38bdf8; }
        .audio-section { background: #fef3c7; padding: 16px; }
        .audio-section h2 { color: #92400e; }
        .audio-text { font-size: 14px; color: #78350f; font-weight: 500; min-height: 20px; }
        .click-hint { position: absolute; bottom: 20px; left: 50%; transform: translateX(-50%); background: rgba(0,0,0,0.8); color: white; padding: 8px 16px; border-radius: 20px; font-size: 13px; z-index: 1000; pointer-events: none; }
        .marker-current { background: #ef4444; border: 3px solid white; border-radius: 50%; width: 16px; height: 16px; box-shadow: 0 2px 6px rgba(0,0,0,0.3); }
        .marker-next { background: #f97316; border: 2px solid white; border-radius: 50%; width: 12px; height: 12px; box-shadow: 0 2px 4px rgba(0,0,0,0.3); }
    </style>
</head>
<body>
    <header>
        <h1>PathEase Debug GUI</h1>
        <span id="connection-status" class="status-badge disconnected">Disconnected</span>
    </header>
    <div class="main-content">
        <div id="map">
            <div class="click-hint">Click on map to set GPS location</div>
        </div>
        <div class="debug-panel">
            <div class="panel-section">
                <h2>Navigation</h2>
                <div class="state-grid">
                    <div class="state-item">
                        <div class="state-label">Status</div>
                        <div class="state-value" id="nav-status">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Day / Stop</div>
                        <div class="state-value" id="day-stop">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Next Stop</div>
                        <div class="state-value" id="next-stop">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Visited</div>
                        <div class="state-value" id="visited">0 / 0</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">GPS Status</div>
                        <div class="state-value" id="gps-status">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Partner</div>
                        <div class="state-value" id="partner">-</div>
                    </div>
                </div>
            </div>
            <div class="panel-section controls">
                <h2>Controls</h2>
                <div class="prompt-text" id="status-message">-</div>
                <button onclick="sendCommand('yes')">Yes</button>
                <button onclick="sendCommand('no')">No</button>
                <button onclick="sendCommand('pause')">Pause</button>
                <button onclick="sendCommand('resume')">Resume</button>
                <button onclick="sendCommand('stop')">Stop</button>
            </div>
            <div class="panel-section audio-section">
                <h2>Audio Prompt</h2>
                <div class="audio-text" id="audio-text">-</div>
            </div>
            <div class="panel-section logs-section">
                <h2>Logs</h2>
                <div class="logs-container" id="logs"></div>
            </div>
        </div>
    </div>
    <script>
        var map = L.map('map').setView([19.0760, 72.8777], 13);
        L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
            attribution: '&copy; OpenStreetMap contributors'
        }).addTo(map);

        var ws = null;
        var stopsLayer = null;
        var currentMarker = null;
        var nextMarker = null;
        var partnerMarker = null;

        var currentIcon = L.divIcon({className: 'marker-current', iconSize: [16, 16], iconAnchor: [8, 8]});
        var nextIcon = L.divIcon({className: 'marker-next', iconSize: [12, 12], iconAnchor: [6, 6]});

        function connect() {
            ws = new WebSocket('ws://localhost:{{WS_PORT}}');

            ws.onopen = function() {
                document.getElementById('connection-status').textContent = 'Connected';
                document.getElementById('connection-status').classList.remove('disconnected');
                addLog('Connected to PathEase');
            };

            ws.onclose = function() {
                document.getElementById('connection-status').textContent = 'Disconnected';
                document.getElementById('connection-status').classList.add('disconnected');
                addLog('Disconnected from PathEase');
                setTimeout(connect, 2000);
            };

            ws.onerror = function(err) {
                addLog('WebSocket error');
            };

            ws.onmessage = function(event) {
                var msg = JSON.parse(event.data);
                handleMessage(msg);
            };
        }

        function handleMessage(msg) {
            switch(msg.type) {
                case 'itinerary':
                    displayItinerary(msg.data);
                    break;
                case 'state':
                    updateState(msg.data);
                    break;
                case 'log':
                    addLog(msg.data.message, msg.data.data);
                    break;
                case 'audio':
                    showAudio(msg.data.text);
                    break;
            }
        }

        function displayItinerary(data) {
            if (stopsLayer) {
                map.removeLayer(stopsLayer);
            }
            stopsLayer = L.layerGroup().addTo(map);
            var points = [];
            (data.itinerary || []).forEach(function(day, d) {
                var dayPoints = [];
                (day.stops || []).forEach(function(stop, s) {
                    if (stop.lat === null || stop.lat === undefined) return;
                    var pos = [stop.lat, stop.lng];
                    dayPoints.push(pos);
                    points.push(pos);
                    L.circleMarker(pos, {radius: 8, fillColor: '#3b82f6', color: '#ffffff', weight: 2, fillOpacity: 1})
                        .addTo(stopsLayer)
                        .bindPopup('<b>Day ' + (d + 1) + ', stop ' + (s + 1) + '</b><br>' + stop.name);
                });
                if (dayPoints.length > 1) {
                    L.polyline(dayPoints, {color: '#3b82f6', weight: 3, opacity: 0.6, dashArray: '6 6'}).addTo(stopsLayer);
                }
            });
            if (points.length > 0) {
                map.fitBounds(L.latLngBounds(points), {padding: [50, 50]});
            }
            addLog('Itinerary received: ' + (data.title || 'untitled'));
        }

        function updateState(state) {
            document.getElementById('nav-status').textContent = state.status || '-';
            document.getElementById('day-stop').textContent = (state.day_index + 1) + ' / ' + (state.stop_index + 1);
            document.getElementById('next-stop').textContent = state.next_stop || '-';
            document.getElementById('visited').textContent = (state.visited || 0) + ' / ' + (state.total || 0);
            document.getElementById('gps-status').textContent = state.gps_status || '-';
            document.getElementById('partner').textContent = state.partner_status || '-';
            document.getElementById('status-message').textContent = state.status_message || '-';

            if (state.location) {
                var pos = [state.location.lat, state.location.lng];
                if (currentMarker) {
                    currentMarker.setLatLng(pos);
                } else {
                    currentMarker = L.marker(pos, {icon: currentIcon}).addTo(map);
                    currentMarker.bindPopup('Current position');
                }
            }

            if (state.target_location) {
                var nextPos = [state.target_location.lat, state.target_location.lng];
                if (nextMarker) {
                    nextMarker.setLatLng(nextPos);
                } else {
                    nextMarker = L.marker(nextPos, {icon: nextIcon}).addTo(map);
                    nextMarker.bindPopup('Next stop');
                }
            }

            if (state.partner_location) {
                var partnerPos = [state.partner_location.lat, state.partner_location.lng];
                if (partnerMarker) {
                    partnerMarker.setLatLng(partnerPos);
                } else {
                    partnerMarker = L.circleMarker(partnerPos, {radius: 9, fillColor: '#a855f7', color: '#ffffff', weight: 2, fillOpacity: 1}).addTo(map);
                    partnerMarker.bindPopup('Partner');
                }
            }
        }

        function showAudio(text) {
            document.getElementById('audio-text').textContent = text;
        }

        function addLog(message, data) {
            var logs = document.getElementById('logs');
            var entry = document.createElement('div');
            entry.className = 'log-entry';

            var timestamp = new Date().toLocaleTimeString();
            var html = '<span class="timestamp">[' + timestamp + ']</span> <span class="message">' + message + '</span>';
            if (data) {
                html += ' <span class="data">' + JSON.stringify(data) + '</span>';
            }
            entry.innerHTML = html;

            logs.appendChild(entry);
            logs.scrollTop = logs.scrollHeight;

            while (logs.children.length > 100) {
                logs.removeChild(logs.firstChild);
            }
        }

        function sendCommand(text) {
            if (ws && ws.readyState === WebSocket.OPEN) {
                ws.send(JSON.stringify({type: 'command', data: {text: text}}));
                addLog('Command: ' + text);
            }
        }

        map.on('click', function(e) {
            if (ws && ws.readyState === WebSocket.OPEN) {
                ws.send(JSON.stringify({
                    type: 'location',
                    data: {
                        lat: e.latlng.lat,
                        lng: e.latlng.lng
                    }
                }));
                addLog('Clicked location: ' + e.latlng.lat.toFixed(5) + ', ' + e.latlng.lng.toFixed(5));
            }
        });

        connect();
    </script>
</body>
</html>'''


class DebugServer:
    """HTTP and WebSocket server for the debug GUI"""

    def __init__(self, http_port: int = 8080, ws_port: int = 8765, open_browser: bool = True):
        self.http_port = http_port
        self.ws_port = ws_port
        self.open_browser = open_browser
        self.location_queue: queue.Queue = queue.Queue()
        self.command_queue: queue.Queue = queue.Queue()
        self.http_thread = None
        self.ws_thread = None
        self.ws_loop = None
        self.connected_clients: set = set()
        self._running = False

    def start(self):
        """Start HTTP and WebSocket servers in background threads"""
        self._running = True

        self.http_thread = threading.Thread(target=self._run_http_server, daemon=True)
        self.http_thread.start()

        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()

        # Give servers time to start
        time.sleep(0.5)

        url = f"http://localhost:{self.http_port}"
        print(f"Debug GUI available at: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def _run_http_server(self):
        """Run the HTTP server for serving the GUI"""
        handler = partial(_DebugHTTPHandler, self.ws_port)
        socketserver.TCPServer.allow_reuse_address = True
        with socketserver.TCPServer(("", self.http_port), handler) as httpd:
            httpd.timeout = 0.5
            while self._running:
                httpd.handle_request()

    def handle_message(self, message: str):
        """Queue a browser message: map clicks become locations, buttons become commands"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return
        payload = data.get("data") or {}
        if data.get("type") == "location":
            try:
                self.location_queue.put(Coordinate(
                    lat=payload["lat"],
                    lng=payload.get("lng", payload.get("lon")),
                    accuracy=0,
                    timestamp=time.time()
                ))
            except (KeyError, TypeError, ValueError):
                return
        elif data.get("type") == "command" and payload.get("text"):
            self.command_queue.put(str(payload["text"]))

    def _run_ws_server(self):
        """Run the WebSocket server"""
        import websockets

        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_message(message)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                async with websockets.serve(handler, "localhost", self.ws_port):
                    while self._running:
                        await asyncio.sleep(0.1)
            except OSError as e:
                print(f"WebSocket server error: {e}")

        self.ws_loop.run_until_complete(main())

    def _send_message(self, msg_type: str, data: dict):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps({"type": msg_type, "data": data})

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except Exception:
                    # Closed sockets are dropped; the browser reconnects
                    self.connected_clients.discard(client)

        if self.ws_loop.is_running():
            asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)

    def send_itinerary(self, itinerary_data: dict):
        """Send the selected itinerary to the browser for display"""
        days = []
        for day in itinerary_data.get("itinerary", []):
            days.append({"stops": [
                {"name": s.get("name"), "lat": s.get("lat"), "lng": s.get("lng")}
                for s in day.get("stops", [])
            ]})
        self._send_message("itinerary", {"title": itinerary_data.get("title"), "itinerary": days})

    def send_state(self, state: dict):
        """Send state update to browser"""
        self._send_message("state", state)

    def send_log(self, message: str, data: Optional[dict] = None):
        """Send log message to browser"""
        self._send_message("log", {"message": message, "data": data})

    def send_audio(self, text: str):
        """Send audio prompt text to browser"""
        self._send_message("audio", {"text": text})

    def get_clicked_location(self, timeout: float = 30) -> Optional[Coordinate]:
        """Block until user clicks on map, return the Coordinate"""
        try:
            return self.location_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending_commands(self) -> list[str]:
        """Drain button presses received since the last call"""
        commands = []
        while True:
            try:
                commands.append(self.command_queue.get_nowait())
            except queue.Empty:
                return commands

    def stop(self):
        """Stop the servers"""
        self._running = False


class _DebugHTTPHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler that serves the debug GUI"""

    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == '/' or self.path == '/index.html':
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            html = DEBUG_GUI_HTML.replace('{{WS_PORT}}', str(self.ws_port))
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass


class WebSocketPositionSource(PositionSource):
    """Position source fed by clicks on the debug GUI map"""

    def __init__(self, debug_server: DebugServer, wait: float = 1.0):
        super().__init__()
        self.server = debug_server
        self.wait = wait

    async def positions(self):
        while True:
            location = await asyncio.to_thread(self.server.get_clicked_location, self.wait)
            if location:
                self.last_location = location
                self.consecutive_failures = 0
                yield location

    def get_status(self) -> str:
        return "Debug GUI (click map to set location)"
