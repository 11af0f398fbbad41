import asyncio
from contextlib import asynccontextmanager

import pytest
import websockets

from speech_relay.adapters.socket_session import SocketSession
from speech_relay.domain.state import ConnectionState
from tests.conftest import TEXT_NAMESPACE, free_port, wait_until


class SocketIOServer:
    def __init__(self) -> None:
        self.received: list[str] = []
        self.connections: list = []
        self.port = 0

    async def handler(self, websocket) -> None:
        self.connections.append(websocket)
        try:
            await websocket.send('0{"sid":"srv","pingInterval":25000,"pingTimeout":20000}')
            async for message in websocket:
                self.received.append(message)
                if message.startswith("40"):
                    await websocket.send(message + '{"sid":"abc"}')
        except websockets.ConnectionClosed:
            pass

    async def push(self, frame: str) -> None:
        await self.connections[-1].send(frame)

    async def close_client(self) -> None:
        await self.connections[-1].close()


@asynccontextmanager
async def running_server(handshake_delay: float = 0.0):
    server = SocketIOServer()

    async def delay_handshake(*args):
        await asyncio.sleep(handshake_delay)

    process_request = delay_handshake if handshake_delay else None
    async with websockets.serve(server.handler, "127.0.0.1", 0, process_request=process_request) as ws_server:
        server.port = ws_server.sockets[0].getsockname()[1]
        yield server


@asynccontextmanager
async def connected_session(server: SocketIOServer, **kwargs):
    session = SocketSession(TEXT_NAMESPACE, **kwargs)
    task = asyncio.create_task(session.connect("127.0.0.1", server.port))
    await wait_until(lambda: session.is_connected or task.done())
    try:
        yield session
    finally:
        await session.disconnect()
        await asyncio.wait_for(task, timeout=2.0)


class TestConnect:
    @pytest.mark.asyncio
    async def test_joins_namespace(self):
        changes = []
        async with running_server() as server:
            async with connected_session(server, on_connection_change=changes.append) as session:
                assert session.is_connected
                assert session.has_session
                await wait_until(lambda: "40/text-stream," in server.received)

        assert changes == [True, False]
        assert session.connection_state == ConnectionState.DISCONNECTED
        assert not session.has_session

    @pytest.mark.asyncio
    async def test_refused_endpoint(self):
        changes = []
        statuses = []
        session = SocketSession(
            TEXT_NAMESPACE,
            on_status=statuses.append,
            on_connection_change=changes.append,
            open_timeout=2.0,
        )

        await session.connect("127.0.0.1", free_port())

        assert changes == [False]
        assert len(statuses) == 1
        assert statuses[0].startswith("Socket connection failed")
        assert not session.has_session
        assert session.connection_state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_server_close_ends_session(self):
        changes = []
        async with running_server() as server:
            session = SocketSession(TEXT_NAMESPACE, on_connection_change=changes.append)
            task = asyncio.create_task(session.connect("127.0.0.1", server.port))
            await wait_until(lambda: session.is_connected)

            await server.close_client()
            await asyncio.wait_for(task, timeout=2.0)

        assert changes == [True, False]
        assert not session.is_connected

    @pytest.mark.asyncio
    async def test_can_reconnect(self):
        async with running_server() as server:
            session = SocketSession(TEXT_NAMESPACE)
            for _ in range(2):
                task = asyncio.create_task(session.connect("127.0.0.1", server.port))
                await wait_until(lambda: session.is_connected)
                await session.disconnect()
                await asyncio.wait_for(task, timeout=2.0)

            assert server.received.count("40/text-stream,") == 2


class TestFrames:
    @pytest.mark.asyncio
    async def test_answers_ping_with_pong(self):
        async with running_server() as server:
            async with connected_session(server):
                await server.push("2")
                await wait_until(lambda: "3" in server.received)

    @pytest.mark.asyncio
    async def test_dispatches_event_to_handler(self):
        received = []
        async with running_server() as server:
            async with connected_session(server) as session:
                session.on("questions_extracted", received.append)
                await server.push('42/text-stream,["questions_extracted",{"questions":[{"question":"why?"}]}]')
                await wait_until(lambda: received)

        assert received == [{"questions": [{"question": "why?"}]}]

    @pytest.mark.asyncio
    async def test_awaits_async_handler(self):
        received = []

        async def handler(payload):
            await asyncio.sleep(0)
            received.append(payload)

        async with running_server() as server:
            async with connected_session(server) as session:
                session.on("session_started", handler)
                await server.push('42/text-stream,["session_started",{"id":1}]')
                await wait_until(lambda: received)

        assert received == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_ignores_foreign_namespace(self):
        received = []
        async with running_server() as server:
            async with connected_session(server) as session:
                session.on("note", received.append)
                await server.push('42/data-updates,["note",{"n":1}]')
                await server.push('42["note",{"n":2}]')
                await server.push('42/text-stream,["note",{"n":3}]')
                await wait_until(lambda: received)

        assert received == [{"n": 3}]

    @pytest.mark.asyncio
    async def test_malformed_frame_keeps_connection(self):
        received = []
        async with running_server() as server:
            async with connected_session(server) as session:
                session.on("note", received.append)
                await server.push('42/text-stream,["note",{"n":')
                await server.push("42/text-stream,[42]")
                await server.push('42/text-stream,["note",{"n":1}]')
                await wait_until(lambda: received)
                assert session.is_connected

        assert received == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_handler_failure_keeps_connection(self):
        received = []

        def broken(_payload):
            raise RuntimeError("handler bug")

        async with running_server() as server:
            async with connected_session(server) as session:
                session.on("bad", broken)
                session.on("good", received.append)
                await server.push('42/text-stream,["bad",{}]')
                await server.push('42/text-stream,["good",{}]')
                await wait_until(lambda: received)
                assert session.is_connected


class TestEmit:
    @pytest.mark.asyncio
    async def test_emit_sends_event_frame(self):
        async with running_server() as server:
            async with connected_session(server) as session:
                assert await session.emit("text_chunk", {"text": "hello"})
                await wait_until(lambda: '42/text-stream,["text_chunk", {"text": "hello"}]' in server.received)

    @pytest.mark.asyncio
    async def test_emit_when_disconnected_is_dropped(self):
        session = SocketSession(TEXT_NAMESPACE)
        assert not await session.emit("text_chunk", {"text": "lost"})

    @pytest.mark.asyncio
    async def test_emit_threadsafe(self):
        async with running_server() as server:
            async with connected_session(server) as session:
                future = await asyncio.to_thread(session.emit_threadsafe, "text_chunk", {"text": "from thread"})
                assert await asyncio.wrap_future(future)
                await wait_until(lambda: any("from thread" in frame for frame in server.received))

    def test_emit_threadsafe_without_loop(self):
        assert SocketSession(TEXT_NAMESPACE).emit_threadsafe("text_chunk", {}) is None


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_without_session_is_noop(self):
        session = SocketSession(TEXT_NAMESPACE)
        await session.disconnect()
        assert session.connection_state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_twice(self):
        changes = []
        async with running_server() as server:
            async with connected_session(server, on_connection_change=changes.append) as session:
                await session.disconnect()
                await session.disconnect()

        assert changes == [True, False]

    @pytest.mark.asyncio
    async def test_disconnect_during_handshake(self):
        changes = []
        async with running_server(handshake_delay=0.3) as server:
            session = SocketSession(TEXT_NAMESPACE, on_connection_change=changes.append)
            task = asyncio.create_task(session.connect("127.0.0.1", server.port))
            await asyncio.sleep(0.05)
            assert session.connection_state == ConnectionState.CONNECTING

            await session.disconnect()
            await asyncio.wait_for(task, timeout=2.0)

        assert changes == [False]
        assert not session.is_connected
        assert not session.has_session
        assert "40/text-stream," not in server.received
