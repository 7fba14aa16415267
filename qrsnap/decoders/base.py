from __future__ import annotations
from typing import List
from PIL import Image
from qrsnap.models import Barcode

QR_SYMBOLOGY = "QRCODE"


class Decoder:
    name: str = "decoder"

    def decode(self, image: Image.Image) -> List[Barcode]:
        raise NotImplementedError
