import asyncio
import base64
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import replicate
from openai import AsyncOpenAI, OpenAIError
from replicate.exceptions import ReplicateException

from . import render
from .config import BrandConfig
from .errors import ConfigError, RemoteError
from .settings import Settings

log = logging.getLogger(__name__)


# OpenAI gpt-image pricing in USD per image, keyed "{size}_{quality}".
IMAGE_PRICING: Dict[str, float] = {
    "1024x1024_low": 0.011,
    "1024x1024_medium": 0.042,
    "1024x1024_high": 0.167,
    "1536x1024_low": 0.016,
    "1536x1024_medium": 0.063,
    "1536x1024_high": 0.25,
    "1024x1536_low": 0.016,
    "1024x1536_medium": 0.063,
    "1024x1536_high": 0.25,
}
DEFAULT_IMAGE_PRICE = 0.044

# Replicate bills per prediction for these models.
REPLICATE_PRICING: Dict[str, float] = {
    "google/imagen-4-fast": 0.02,
    "black-forest-labs/flux-kontext-pro": 0.04,
}

REPLICATE_ASPECT_RATIOS: Dict[str, str] = {
    "1024x1024": "1:1",
    "1536x1024": "4:3",
    "1024x1536": "3:4",
}


def api_quality(quality: str) -> str:
    return "high" if quality == "auto" else quality


def calculate_image_cost(size: str, quality: str) -> float:
    return IMAGE_PRICING.get(f"{size}_{api_quality(quality)}", DEFAULT_IMAGE_PRICE)


@dataclass
class GenerationResult:
    image: bytes
    cost: float
    model: str
    operation: str
    size: str
    quality: str


class ImageGenerator:
    """
    Remote image capability used by the pipeline stages.

    `generate` creates an image from a prompt; `compose` places an edit asset
    (the logo) on a base image and lets the model polish the result. Each
    successful call reports what it cost. `charges` is False for generators
    that never bill.
    """

    charges = True

    async def generate(self, prompt: str, size: str, quality: str) -> GenerationResult:
        raise NotImplementedError

    async def compose(
        self,
        base_image: bytes,
        edit_asset: bytes,
        prompt: str,
        size: str,
        quality: str,
    ) -> GenerationResult:
        raise NotImplementedError


@dataclass
class OpenAIImageGenerator(ImageGenerator):

    api_key: Optional[str] = None
    model: str = "gpt-image-1"
    _client: Optional[AsyncOpenAI] = field(default=None, init=False, repr=False)

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ConfigError(
                "OPENAI_API_KEY not found. Provide an API key in the request "
                "or set OPENAI_API_KEY in your .env file.",
                field="api_key",
            )
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str, size: str, quality: str) -> GenerationResult:
        client = self._get_client()
        log.info("Generating background (%s, %s)", size, quality)
        try:
            response = await client.images.generate(
                model=self.model,
                prompt=prompt,
                size=size,
                quality=api_quality(quality),
                n=1,
            )
        except OpenAIError as exc:
            raise RemoteError(f"Image generation failed: {exc}") from exc

        return GenerationResult(
            image=_decode_b64(response),
            cost=calculate_image_cost(size, quality),
            model=self.model,
            operation="generate",
            size=size,
            quality=api_quality(quality),
        )

    async def compose(
        self,
        base_image: bytes,
        edit_asset: bytes,
        prompt: str,
        size: str,
        quality: str,
    ) -> GenerationResult:
        client = self._get_client()
        composite = await asyncio.to_thread(
            render.composite_logo, base_image, edit_asset, render.SIZE_DIMENSIONS[size]
        )
        log.info("Composing hero (%s, %s)", size, quality)
        try:
            response = await client.images.edit(
                model=self.model,
                image=("composite.png", composite, "image/png"),
                prompt=prompt,
                size=size,
                quality=api_quality(quality),
                n=1,
            )
        except OpenAIError as exc:
            raise RemoteError(f"Image edit failed: {exc}") from exc

        return GenerationResult(
            image=_decode_b64(response),
            cost=calculate_image_cost(size, quality),
            model=self.model,
            operation="edit",
            size=size,
            quality=api_quality(quality),
        )


@dataclass
class ReplicateImageGenerator(ImageGenerator):
    """
    Replicate-hosted models: Imagen 4 Fast for backgrounds, FLUX Kontext for
    the logo edit. Outputs are cover-fitted to the requested size.
    """

    api_token: Optional[str] = None
    image_model: str = "google/imagen-4-fast"
    edit_model: str = "black-forest-labs/flux-kontext-pro"

    def _client(self) -> replicate.Client:
        if not self.api_token:
            raise ConfigError(
                "REPLICATE_API_TOKEN is not set. A valid API token is required for image generation.",
                field="api_token",
            )
        return replicate.Client(api_token=self.api_token)

    async def generate(self, prompt: str, size: str, quality: str) -> GenerationResult:
        input_params = {
            "prompt": prompt,
            "aspect_ratio": REPLICATE_ASPECT_RATIOS.get(size, "1:1"),
        }
        image = await self._run(self.image_model, input_params, size)
        return GenerationResult(
            image=image,
            cost=REPLICATE_PRICING.get(self.image_model, DEFAULT_IMAGE_PRICE),
            model=self.image_model,
            operation="generate",
            size=size,
            quality=quality,
        )

    async def compose(
        self,
        base_image: bytes,
        edit_asset: bytes,
        prompt: str,
        size: str,
        quality: str,
    ) -> GenerationResult:
        composite = await asyncio.to_thread(
            render.composite_logo, base_image, edit_asset, render.SIZE_DIMENSIONS[size]
        )
        input_params = {
            "prompt": prompt,
            "input_image": io.BytesIO(composite),
            "aspect_ratio": "match_input_image",
            "output_format": "png",
        }
        image = await self._run(self.edit_model, input_params, size)
        return GenerationResult(
            image=image,
            cost=REPLICATE_PRICING.get(self.edit_model, DEFAULT_IMAGE_PRICE),
            model=self.edit_model,
            operation="edit",
            size=size,
            quality=quality,
        )

    async def _run(self, model: str, input_params: Dict[str, Any], size: str) -> bytes:
        client = self._client()

        def _call() -> bytes:
            output = client.run(model, input=input_params)
            if isinstance(output, (list, tuple)):
                output = output[0] if output else None
            if output is None:
                raise RemoteError(f"No image data received from {model}")
            data = output.read()
            img = render.load_image(data).convert("RGB")
            target = render.SIZE_DIMENSIONS[size]
            if img.size != target:
                img = render.resize_cover(img, target)
            return render.to_png_bytes(img)

        log.info("Running Replicate model %s", model)
        try:
            return await asyncio.to_thread(_call)
        except ReplicateException as exc:
            raise RemoteError(f"Replicate call to {model} failed: {exc}") from exc


@dataclass
class DemoImageGenerator(ImageGenerator):
    """
    Local stand-in that renders gradient placeholders from the brand colors.
    Never calls out and never costs anything.
    """

    colors: Sequence[str] = ()
    charges = False

    async def generate(self, prompt: str, size: str, quality: str) -> GenerationResult:
        image = await asyncio.to_thread(
            render.placeholder_image, render.SIZE_DIMENSIONS[size], list(self.colors), "DEMO"
        )
        return GenerationResult(image, 0.0, "demo", "generate", size, quality)

    async def compose(
        self,
        base_image: bytes,
        edit_asset: bytes,
        prompt: str,
        size: str,
        quality: str,
    ) -> GenerationResult:
        image = await asyncio.to_thread(
            render.composite_logo, base_image, edit_asset, render.SIZE_DIMENSIONS[size]
        )
        return GenerationResult(image, 0.0, "demo", "edit", size, quality)


def build_generator(settings: Settings, config: BrandConfig) -> ImageGenerator:
    if config.demo_mode:
        return DemoImageGenerator(colors=config.colors)
    if settings.image_provider == "replicate":
        return ReplicateImageGenerator(api_token=settings.replicate_api_token)
    return OpenAIImageGenerator(
        api_key=config.api_key or settings.openai_api_key,
        model=settings.openai_model,
    )


def _decode_b64(response: Any) -> bytes:
    data = getattr(response, "data", None) or []
    b64 = getattr(data[0], "b64_json", None) if data else None
    if not b64:
        raise RemoteError("No image data received in the API response")
    try:
        return base64.b64decode(b64)
    except ValueError as exc:
        raise RemoteError(f"Invalid image payload: {exc}") from exc
