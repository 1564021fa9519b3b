from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace

import pytest

from brandkit.errors import ConfigError, RemoteError
from brandkit.generator import (
    DemoImageGenerator,
    OpenAIImageGenerator,
    ReplicateImageGenerator,
    _decode_b64,
    build_generator,
)
from brandkit.render import load_image
from brandkit.settings import Settings
from conftest import make_config, png_bytes


class FakeImages:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.calls = []

    async def generate(self, **kwargs):
        self.calls.append(("generate", kwargs))
        return self._response()

    async def edit(self, **kwargs):
        self.calls.append(("edit", kwargs))
        return self._response()

    def _response(self):
        return SimpleNamespace(data=[SimpleNamespace(b64_json=base64.b64encode(self.payload).decode())])


def _openai_with_fake(payload: bytes):
    generator = OpenAIImageGenerator(api_key="sk-test", model="gpt-image-1")
    images = FakeImages(payload)
    generator._client = SimpleNamespace(images=images)
    return generator, images


def test_openai_generate_decodes_and_prices() -> None:
    generator, images = _openai_with_fake(b"image-bytes")

    result = asyncio.run(generator.generate("a prompt", "1536x1024", "auto"))

    assert result.image == b"image-bytes"
    assert result.cost == 0.25
    assert result.operation == "generate"
    _, kwargs = images.calls[0]
    assert kwargs["model"] == "gpt-image-1"
    assert kwargs["size"] == "1536x1024"
    assert kwargs["quality"] == "high"
    assert kwargs["n"] == 1


def test_openai_compose_sends_composite_png() -> None:
    generator, images = _openai_with_fake(b"edited")

    result = asyncio.run(
        generator.compose(png_bytes((300, 200)), png_bytes((50, 50)), "edit it", "1024x1024", "low")
    )

    assert result.image == b"edited"
    assert result.cost == 0.011
    operation, kwargs = images.calls[0]
    assert operation == "edit"
    name, data, mime = kwargs["image"]
    assert (name, mime) == ("composite.png", "image/png")
    assert load_image(data).size == (1024, 1024)


def test_openai_without_key_is_a_config_error() -> None:
    generator = OpenAIImageGenerator(api_key=None)
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        asyncio.run(generator.generate("p", "1024x1024", "high"))


def test_replicate_without_token_is_a_config_error() -> None:
    generator = ReplicateImageGenerator(api_token=None)
    with pytest.raises(ConfigError, match="REPLICATE_API_TOKEN"):
        asyncio.run(generator.generate("p", "1024x1024", "high"))


def test_empty_payload_is_a_remote_error() -> None:
    with pytest.raises(RemoteError):
        _decode_b64(SimpleNamespace(data=[]))
    with pytest.raises(RemoteError):
        _decode_b64(SimpleNamespace(data=[SimpleNamespace(b64_json=None)]))


def test_demo_generator_is_free() -> None:
    generator = DemoImageGenerator(colors=("#000000", "#ffffff"))
    result = asyncio.run(generator.generate("p", "1024x1536", "high"))
    assert generator.charges is False
    assert result.cost == 0.0
    assert load_image(result.image).size == (1024, 1536)


def test_build_generator_selection() -> None:
    settings = Settings(openai_api_key="sk-env")

    assert isinstance(build_generator(settings, make_config(demo_mode=True)), DemoImageGenerator)

    openai = build_generator(settings, make_config(api_key="sk-request"))
    assert isinstance(openai, OpenAIImageGenerator)
    assert openai.api_key == "sk-request"
    assert build_generator(settings, make_config()).api_key == "sk-env"

    replicate_settings = Settings(image_provider="replicate", replicate_api_token="r8_x")
    assert isinstance(build_generator(replicate_settings, make_config()), ReplicateImageGenerator)
