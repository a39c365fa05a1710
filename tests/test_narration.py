"""Tests for segment narration and the ElevenLabs provider."""

import json

import httpx
import pytest

from storyscape.config import SpeechConfig
from storyscape.errors import NotFoundError, RemoteCallError
from storyscape.narration import narrate_segment, resolve_voice
from storyscape.providers.elevenlabs import ElevenLabsSynthesizer

from tests.conftest import FakeSpeech


class TestResolveVoice:
    def test_known_voices(self):
        config = SpeechConfig()
        assert resolve_voice(config, "Brian") == "nPczCjzI2devNBz1zQrb"
        assert resolve_voice(config, " dorothy ") == "ThT5KcBeYPX3keUQqHPh"

    def test_unknown_voice(self):
        with pytest.raises(ValueError, match="Available: Alice, Brian, Charlie, Dorothy"):
            resolve_voice(SpeechConfig(), "Zed")


class TestNarrateSegment:
    def test_stores_audio_and_records_it(self, populated_db, config, media):
        speech = FakeSpeech()
        url = narrate_segment(populated_db, config, speech, media, 1, segment_index=1, voice="Charlie")

        assert url.startswith("/media/story-audio/")
        assert url.endswith(".mp3")
        assert media.resolve(url).read_bytes() == b"ID3 fake audio"
        assert speech.calls == [("The alley opens onto a moonlit garden.", "IKne3meq5aSn9XLyUdCD")]

        segments = populated_db.get_audio_segments(1)
        assert [(a.segment_index, a.audio_url) for a in segments] == [(1, url)]
        assert populated_db.get_story(1).audio_url == url

    def test_segment_out_of_range(self, populated_db, config, media):
        with pytest.raises(ValueError):
            narrate_segment(populated_db, config, FakeSpeech(), media, 1, segment_index=5)

    def test_unknown_story(self, populated_db, config, media):
        with pytest.raises(NotFoundError):
            narrate_segment(populated_db, config, FakeSpeech(), media, 999)

    def test_unknown_voice_checked_before_synthesis(self, populated_db, config, media):
        speech = FakeSpeech()
        with pytest.raises(ValueError):
            narrate_segment(populated_db, config, speech, media, 1, voice="Nobody")
        assert speech.calls == []


class TestElevenLabsSynthesizer:
    def test_posts_text_and_voice_settings(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers["xi-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"mp3-bytes")

        synth = ElevenLabsSynthesizer(
            SpeechConfig(), api_key="test-key", transport=httpx.MockTransport(handler),
        )
        assert synth.synthesize("Hello Kyoto", "voice-1") == b"mp3-bytes"
        assert seen["url"] == "https://api.elevenlabs.io/v1/text-to-speech/voice-1"
        assert seen["key"] == "test-key"
        assert seen["body"]["text"] == "Hello Kyoto"
        assert seen["body"]["model_id"] == "eleven_monolingual_v1"
        assert seen["body"]["voice_settings"] == {"stability": 0.5, "similarity_boost": 0.75}

    def test_http_error_status(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="invalid api key"))
        synth = ElevenLabsSynthesizer(SpeechConfig(), api_key="bad", transport=transport)
        with pytest.raises(RemoteCallError) as exc:
            synth.synthesize("Hello", "voice-1")
        assert exc.value.status_code == 401

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        synth = ElevenLabsSynthesizer(
            SpeechConfig(), api_key="k", transport=httpx.MockTransport(handler),
        )
        with pytest.raises(RemoteCallError):
            synth.synthesize("Hello", "voice-1")

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        with pytest.raises(RemoteCallError):
            ElevenLabsSynthesizer(SpeechConfig()).synthesize("Hello", "voice-1")

    def test_empty_text(self):
        with pytest.raises(ValueError):
            ElevenLabsSynthesizer(SpeechConfig(), api_key="k").synthesize("  ", "voice-1")
