"""
Receipt OCR Service
Produces a prefill guess for the expense form from an uploaded receipt.
Recognition is simulated: the guess is randomized, not read from the image.
"""

from datetime import date
from typing import Optional
import asyncio
import random

from fastapi import UploadFile

from expenseflow.config.settings import settings
from expenseflow.models.expense import ExpenseCategory
from expenseflow.schemas.expense import ReceiptScanResponse
from expenseflow.utils.file_handler import validate_receipt
from expenseflow.utils.logger import setup_logger

logger = setup_logger()

SCANNABLE_CATEGORIES = [
    ExpenseCategory.TRAVEL,
    ExpenseCategory.FOOD,
    ExpenseCategory.SUPPLIES,
    ExpenseCategory.ENTERTAINMENT,
]


class OCRService:
    """Simulated receipt scanner"""

    def __init__(self, rng: Optional[random.Random] = None, delay_seconds: Optional[float] = None):
        self.rng = rng or random.Random()
        self.delay_seconds = settings.OCR_DELAY_SECONDS if delay_seconds is None else delay_seconds

    async def scan_receipt(self, file: UploadFile) -> ReceiptScanResponse:
        """
        Validate the upload and return a structured guess

        Raises:
            ValidationError: If the upload is not an acceptable receipt
        """
        validate_receipt(file)

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        guess = ReceiptScanResponse(
            amount=float(self.rng.randint(10, 509)),
            currency="USD",
            category=self.rng.choice(SCANNABLE_CATEGORIES).value,
            description="Auto-generated from receipt",
            date=date.today(),
            merchant="Sample Merchant"
        )

        logger.info(f"Receipt {file.filename} scanned: {guess.amount} {guess.currency} ({guess.category.value})")
        return guess


# Create singleton instance
ocr_service = OCRService()
