# orderdesk/routers/realtime.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def dashboard_feed(ws: WebSocket):
    relay = ws.app.state.relay
    await relay.connect(ws)
    try:
        while True:
            # clients only listen; anything they send is ignored
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(ws)
