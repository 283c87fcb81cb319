import logging
import re

logger = logging.getLogger(__name__)


class Plugin:
    """
    Corrects common typos in the input before it is sent to the API.
    """
    def __init__(self, corrections=None):
        # Define your custom corrections here
        self.corrections = corrections or {
            "teh": "the",
            "pls": "please",
            "recieve": "receive",
            "seperate": "separate",
        }

    def execute(self, text: str) -> str:
        corrected = text
        for wrong, right in self.corrections.items():
            # Whole words only; 'teh' must not touch 'tehran'
            corrected = re.sub(rf"\b{re.escape(wrong)}\b", lambda _: right, corrected)

        if corrected != text:
            logger.info(f"[SpellCheckPlugin] Corrected '{text}' → '{corrected}'")
        return corrected
