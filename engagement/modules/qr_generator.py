"""
QR Code Generator Module - Tutoring Center Engagement Core

Prints the badge a student shows to the scanner. The QR payload is the bare
student code, which is exactly what the code matcher expects to find in the
decoded text.
"""

import base64
import io
import logging
from typing import Any, Dict

import qrcode
from PIL import Image, ImageDraw, ImageFont

from engagement.modules.models import Student


class BadgeGenerator:
    """
    QR badge generator for student codes.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.logger = logging.getLogger(__name__)
        self.settings = {
            'version': 1,
            'error_correction': qrcode.constants.ERROR_CORRECT_M,
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def make_image(self, student: Student, with_info: bool = True) -> Image.Image:
        """
        Render the badge image for a student.

        Args:
            student (Student): Badge owner
            with_info (bool): Print name and code under the QR code
        """
        if not student.code:
            raise ValueError(f"Student {student.id} has no code")

        qr = qrcode.QRCode(
            version=self.settings['version'],
            error_correction=self.settings['error_correction'],
            box_size=self.settings['box_size'],
            border=self.settings['border']
        )
        qr.add_data(student.code)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=self.settings['fill_color'],
            back_color=self.settings['back_color']
        ).convert('RGB')

        if with_info:
            img = self._add_student_info(img, student)
        return img

    def _add_student_info(self, qr_img: Image.Image, student: Student) -> Image.Image:
        width, height = qr_img.size
        badge = Image.new('RGB', (width, height + 60), 'white')
        badge.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(badge)
        font = ImageFont.load_default()

        text_y = height + 8
        for line in (student.name, student.code):
            bbox = draw.textbbox((0, 0), line, font=font)
            line_width = bbox[2] - bbox[0]
            draw.text(((width - line_width) // 2, text_y), line, fill='black', font=font)
            text_y += 22

        return badge

    def generate_png(self, student: Student, with_info: bool = True) -> bytes:
        buffer = io.BytesIO()
        self.make_image(student, with_info).save(buffer, format='PNG')
        self.logger.info(f"Badge generated for student {student.id}")
        return buffer.getvalue()

    def generate_badge(self, student: Student, with_info: bool = True) -> Dict[str, Any]:
        """
        Badge as base64 PNG for embedding in the dashboard.

        Returns:
            Dict[str, Any]: Generation result
        """
        try:
            png = self.generate_png(student, with_info)
            return {
                'success': True,
                'student_id': student.id,
                'qr_data': student.code,
                'image_base64': base64.b64encode(png).decode(),
                'filename': f"badge_{student.code}.png"
            }
        except Exception as e:
            self.logger.error(f"Badge generation failed for {student.id}: {str(e)}")
            return {
                'success': False,
                'student_id': student.id,
                'error': str(e)
            }
