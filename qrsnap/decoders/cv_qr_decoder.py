from typing import List
import cv2
import numpy as np
from PIL import Image
from qrsnap.models import Barcode
from qrsnap.decoders.base import Decoder, QR_SYMBOLOGY


class OpenCvQrDecoder(Decoder):
    name = "opencv-qr"

    def decode(self, image: Image.Image) -> List[Barcode]:
        arr = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)
        detector = cv2.QRCodeDetector()

        ok, texts, _, _ = detector.detectAndDecodeMulti(arr)
        if ok:
            found = [t for t in texts if t]
            if found:
                return [Barcode(symbology=QR_SYMBOLOGY, data=str(t), source=self.name) for t in found]

        # Single fallback
        data, _, _ = detector.detectAndDecode(arr)
        if data:
            return [Barcode(symbology=QR_SYMBOLOGY, data=str(data), source=self.name)]
        return []
