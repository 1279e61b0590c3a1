"""Public visitor signals: flavor votes and the merch waitlist."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from config import settings
from dependencies import get_record_store
from packages.delivery.engagement import Signal, deliver, flavor_vote, merch_signup
from packages.delivery.record_store import RecordStoreClient

router = APIRouter(prefix="/api", tags=["Engagement"])


class VoteBody(BaseModel):
    flavor: Optional[str] = None


class MerchBody(BaseModel):
    email: Optional[str] = None


def client_meta(request: Request) -> dict:
    ip = request.headers.get("x-forwarded-for") or (request.client.host if request.client else "")
    return {"ua": request.headers.get("user-agent") or "", "ip": ip}


async def _record(signal: Signal, webhook_url: str, table: str, store: RecordStoreClient) -> Response:
    await deliver(signal, webhook_url=webhook_url, store=store, table=table)
    return Response(status_code=204)


@router.post("/vote-flavor", status_code=204)
async def vote_flavor(body: VoteBody, request: Request, store: RecordStoreClient = Depends(get_record_store)):
    signal = flavor_vote(body.flavor, **client_meta(request))
    return await _record(signal, settings.vote_webhook_url, settings.table_votes, store)


@router.post("/notify-merch", status_code=204)
async def notify_merch(body: MerchBody, request: Request, store: RecordStoreClient = Depends(get_record_store)):
    signal = merch_signup(body.email, **client_meta(request))
    return await _record(signal, settings.merch_webhook_url, settings.table_merch, store)
