"""Lightweight local HTTP API for the popup/panel UI: /message and /export."""

import asyncio
import concurrent.futures
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import Flask, Response, request, jsonify

from .commands import CommandExecutor

logger = logging.getLogger(__name__)

_app_instance: Optional[Flask] = None
_server_thread: Optional[threading.Thread] = None

# Seconds to wait for the event loop to answer a message
REQUEST_TIMEOUT = 30.0


def _dispatch(executor: CommandExecutor, loop: asyncio.AbstractEventLoop, message: Dict[str, Any], timeout: float) -> Dict[str, Any]:
	"""Run one message on the manager's event loop and wait for the response."""
	future = asyncio.run_coroutine_threadsafe(executor.execute(message), loop)
	try:
		return future.result(timeout=timeout)
	except concurrent.futures.TimeoutError:
		future.cancel()
		return {"success": False, "error": "timed out waiting for the tab manager"}


def create_app(executor: CommandExecutor, loop: asyncio.AbstractEventLoop, timeout: float = REQUEST_TIMEOUT) -> Flask:
	app = Flask("tab_manager_api")

	@app.get("/health")
	def health():
		return jsonify({"status": "ok"})

	# Basic CORS for a local extension/file:// UI
	@app.after_request
	def add_cors_headers(response):
		response.headers["Access-Control-Allow-Origin"] = "*"
		response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
		response.headers["Access-Control-Allow-Headers"] = "Content-Type"
		return response

	@app.route("/message", methods=["POST", "OPTIONS"])
	def message():
		"""Request/response boundary: {type, data} -> {success, data | error}."""
		if request.method == "OPTIONS":
			return ("", 204)
		data = request.get_json(silent=True)
		if not isinstance(data, dict):
			return jsonify({"success": False, "error": "expected a JSON object"}), 400
		return jsonify(_dispatch(executor, loop, data, timeout))

	@app.route("/export", methods=["GET", "OPTIONS"])
	def export():
		"""Export as a downloadable JSON file."""
		if request.method == "OPTIONS":
			return ("", 204)
		result = _dispatch(executor, loop, {"type": "EXPORT_TABS"}, timeout)
		if not result.get("success"):
			return jsonify(result), 500
		stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
		return Response(
			json.dumps(result["data"], indent=2),
			mimetype="application/json",
			headers={"Content-Disposition": f'attachment; filename="tab-manager-export-{stamp}.json"'},
		)

	return app


def start_api_server(executor: CommandExecutor, loop: asyncio.AbstractEventLoop, port: int = 8771) -> None:
	"""
	Start the local API server in a background thread.
	Only binds to 127.0.0.1.
	"""
	global _app_instance, _server_thread
	if _server_thread and _server_thread.is_alive():
		return
	_app_instance = create_app(executor, loop)

	def run():
		_app_instance.run(host="127.0.0.1", port=port, debug=False, use_reloader=False)

	_server_thread = threading.Thread(target=run, daemon=True)
	_server_thread.start()
	logger.info("Local API listening on http://127.0.0.1:%d", port)
