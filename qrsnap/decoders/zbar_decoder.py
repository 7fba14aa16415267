from typing import List
from PIL import Image
from pyzbar.pyzbar import ZBarSymbol, decode as zbar_decode
from qrsnap.models import Barcode
from qrsnap.decoders.base import Decoder, QR_SYMBOLOGY

SUPPORTED_SYMBOLS = [ZBarSymbol.QRCODE]


class ZBarDecoder(Decoder):
    name = "zbar"

    def decode(self, image: Image.Image) -> List[Barcode]:
        results = zbar_decode(image.convert("L"), symbols=SUPPORTED_SYMBOLS)
        out: List[Barcode] = []
        for r in results:
            try:
                data = r.data.decode("utf-8")
            except UnicodeDecodeError:
                data = r.data.decode("latin-1")
            out.append(Barcode(symbology=QR_SYMBOLOGY, data=data, source=self.name))
        return out
