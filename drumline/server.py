"""
drumline.server
~~~~~~~~~~~~~~~
Non-blocking JSON-lines front door for the authority.  Panels and page
agents run in other processes; each connects, optionally attaches as a
destination, and exchanges one JSON object per line:

    {"signal": "navigation", "url": "https://example.com/"}
    {"attach": "panel"}
    {"destination": "authority", "category": "isHostnameBlocked"}
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .authority import AuthorityService
from .bus import Handler, MessageBus
from .codec import CATEGORIES
from .config import Config
from .effects import EffectDispatcher, LogNotifier, Notifier
from .errors import DrumlineError, ProtocolError
from .logger import DrumlineLogger
from .protocol import Destination, Envelope
from .storage import CategoryWriter, JsonFileStorage, PersistenceAdapter


def run_authority(config: Config) -> None:
    server = AuthorityServer(config)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        print("\n▸ Drumline authority shut down.")


class AuthorityServer:
    def __init__(
        self,
        cfg: Config,
        storage: Optional[PersistenceAdapter] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.cfg = cfg
        self.logger = DrumlineLogger(cfg.log_path, console=cfg.log_console)
        self.storage = storage or JsonFileStorage(cfg.storage_path)
        self.bus = MessageBus(self.logger)
        writers = {key: CategoryWriter(self.storage, key) for key in CATEGORIES}
        dispatcher = EffectDispatcher(
            self.bus, notifier or LogNotifier(self.logger), writers, self.logger
        )
        self.authority = AuthorityService(self.storage, dispatcher, self.logger, clock)
        self.bus.register(Destination.AUTHORITY, self.authority.handle)

    async def start(self) -> asyncio.AbstractServer:
        await self.authority.initialize()
        server = await asyncio.start_server(
            self._handle_client,
            host=self.cfg.listen_host,
            port=self.cfg.listen_port,
        )

        bind_str = ", ".join(str(s.getsockname()) for s in server.sockets)
        self.logger.listening(bind_str)
        print(f"▸ Drumline authority listening on {bind_str}")
        return server

    async def serve_forever(self) -> None:
        server = await self.start()
        async with server:
            await server.serve_forever()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        attached: List[Tuple[Destination, Handler]] = []
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    reply = await self._handle_line(line, writer, attached)
                except DrumlineError as e:
                    self.logger.request_failed(type(e).__name__, e.msg)
                    reply = {"error": type(e).__name__, "message": e.msg}
                if reply is not None:
                    await _write_json(writer, reply)
        except ConnectionResetError:
            pass
        finally:
            for destination, handler in attached:
                self.bus.unregister(destination, handler)
            try:
                writer.close()
                await writer.wait_closed()
            except ConnectionResetError:
                pass

    async def _handle_line(
        self,
        line: bytes,
        writer: asyncio.StreamWriter,
        attached: List[Tuple[Destination, Handler]],
    ) -> Optional[Dict[str, Any]]:
        try:
            raw = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Malformed JSON line: {e}") from None
        if not isinstance(raw, dict):
            raise ProtocolError("Each line must be a JSON object")

        if "signal" in raw:
            await self._signal(raw.get("signal"), raw.get("url"))
            return None

        if "attach" in raw:
            destination, handler = self._attach(raw.get("attach"), writer)
            attached.append((destination, handler))
            return {"attached": destination.value}

        response = await self.bus.deliver(Envelope.from_dict(raw))
        return None if response is None else {"response": response}

    async def _signal(self, signal: Any, url: Any) -> None:
        if url is not None and not isinstance(url, str):
            raise ProtocolError(f"Signal url must be a string, got {type(url).__name__}")
        if signal == "navigation":
            await self.authority.on_navigation(url or "")
        elif signal == "activation":
            await self.authority.on_activation(url)
        else:
            raise ProtocolError(f"Unknown signal: {signal}")

    def _attach(self, name: Any, writer: asyncio.StreamWriter) -> Tuple[Destination, Handler]:
        try:
            destination = Destination(name)
        except ValueError:
            raise ProtocolError(f"Unknown destination: {name}") from None
        if destination is Destination.AUTHORITY:
            raise ProtocolError("The authority cannot be attached remotely")

        async def forward(envelope: Envelope) -> None:
            await _write_json(writer, envelope.to_dict())

        self.bus.register(destination, forward)
        return destination, forward


async def _write_json(writer: asyncio.StreamWriter, obj: Dict[str, Any]) -> None:
    writer.write(json.dumps(obj, separators=(",", ":")).encode() + b"\n")
    await writer.drain()
