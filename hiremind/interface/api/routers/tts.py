from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ....processors.speech import ElevenLabsClient
from ..dependencies import get_tts
from ..schemas import SpeechRequest

router = APIRouter(tags=["tts"])


@router.post("/tts")
async def text_to_speech(body: SpeechRequest, client: ElevenLabsClient = Depends(get_tts)):
    """MP3 audio for `text`, or a hint that the browser should use its own voice."""
    audio = await client.synthesize(body.text)
    if not audio:
        return {"use_local_voice": True}
    return Response(content=audio, media_type="audio/mpeg")
