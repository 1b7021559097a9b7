# src/exporter/services/asset_probe_service.py
import asyncio
import logging
import struct
from typing import Dict, List, Optional, Tuple

import aiohttp

from exporter.model import PlannedAsset

logger = logging.getLogger(__name__)

# Enough bytes to reach the size header of PNG, GIF, WebP and most JPEGs.
SNIFF_BYTES = 64 * 1024


def sniff_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """Reads (width, height) from the first bytes of a PNG, GIF, WebP or JPEG file."""
    if len(data) >= 24 and data.startswith(b"\x89PNG\r\n\x1a\n"):
        width, height = struct.unpack(">II", data[16:24])
        return width, height

    if len(data) >= 10 and data[:6] in (b"GIF87a", b"GIF89a"):
        width, height = struct.unpack("<HH", data[6:10])
        return width, height

    if len(data) >= 30 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        chunk = data[12:16]
        if chunk == b"VP8X":
            width = 1 + int.from_bytes(data[24:27], "little")
            height = 1 + int.from_bytes(data[27:30], "little")
            return width, height
        if chunk == b"VP8 ":
            width, height = struct.unpack("<HH", data[26:30])
            return width & 0x3FFF, height & 0x3FFF
        if chunk == b"VP8L" and len(data) >= 25:
            bits = int.from_bytes(data[21:25], "little")
            return (bits & 0x3FFF) + 1, ((bits >> 14) & 0x3FFF) + 1
        return None

    if data[:2] == b"\xff\xd8":
        offset = 2
        while offset + 9 < len(data):
            if data[offset] != 0xFF:
                offset += 1
                continue
            marker = data[offset + 1]
            if marker in (0xD8, 0x01) or 0xD0 <= marker <= 0xD7:
                offset += 2
                continue
            length = struct.unpack(">H", data[offset + 2:offset + 4])[0]
            if marker in (0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF):
                height, width = struct.unpack(">HH", data[offset + 5:offset + 9])
                return width, height
            offset += 2 + length
    return None


class AssetProbeService:
    """
    Optional network check of planned images.

    Each absolute image URL gets a HEAD request and, when that succeeds, a
    ranged GET of the first bytes to read its intrinsic size. Everything is
    bounded by one timeout; an asset whose probe fails or times out keeps its
    original URL but loses its responsive variants.
    """

    def __init__(self, timeout: float = 3.0, concurrency: int = 8, user_agent: str = "pagesmith-asset-probe"):
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(concurrency)
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
            logger.debug("AssetProbeService: Session initialized.")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("AssetProbeService: Session closed.")

    async def probe(self, url: str) -> Dict:
        """Returns {'ok': bool, 'width', 'height', 'error'} for one URL."""
        if not self.session or self.session.closed:
            await self.initialize()
        try:
            async with self.semaphore:
                async with self.session.head(url, allow_redirects=True) as response:
                    if response.status >= 400:
                        return {"ok": False, "error": f"HTTP {response.status}"}
                async with self.session.get(url, headers={"Range": f"bytes=0-{SNIFF_BYTES - 1}"}) as response:
                    if response.status >= 400:
                        return {"ok": True}
                    data = await response.content.read(SNIFF_BYTES)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {"ok": False, "error": str(e) or type(e).__name__}

        dims = sniff_dimensions(data)
        if dims is None:
            return {"ok": True}
        return {"ok": True, "width": dims[0], "height": dims[1]}

    async def probe_assets(self, assets: List[PlannedAsset]) -> List[str]:
        """Probes every absolute http(s) image in place. Returns one warning per failed probe."""
        targets = [a for a in assets if a.kind == "image" and a.url.lower().startswith(("http://", "https://"))]
        if not targets:
            return []
        results = await asyncio.gather(*(self.probe(a.url) for a in targets))

        warnings = []
        for asset, result in zip(targets, results):
            if not result.get("ok"):
                asset.variants = []
                asset.srcset = None
                asset.sizes = None
                asset.resizable = False
                warnings.append(f"Asset probe failed for '{asset.url}' ({result.get('error')}); using the original URL.")
                continue
            if result.get("width") and not asset.width:
                asset.width = result["width"]
                asset.height = result.get("height")
        return warnings


def probe_assets(assets: List[PlannedAsset], timeout: float = 3.0) -> List[str]:
    """Synchronous entry point used by the compiler."""

    async def run() -> List[str]:
        async with AssetProbeService(timeout=timeout) as service:
            return await asyncio.wait_for(service.probe_assets(assets), timeout=timeout * 2)

    try:
        return asyncio.run(run())
    except asyncio.TimeoutError:
        for asset in assets:
            if asset.kind == "image" and asset.url.lower().startswith(("http://", "https://")):
                asset.variants = []
                asset.srcset = None
                asset.sizes = None
                asset.resizable = False
        return [f"Asset probing timed out after {timeout * 2:g}s; remote images use their original URL."]
