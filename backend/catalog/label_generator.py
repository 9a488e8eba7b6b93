"""
Shelf label generator
Renders name, price, unit and barcode into a PNG with Pillow and python-barcode
"""
import io
import base64
import logging
from decimal import Decimal
from typing import Optional

from PIL import Image, ImageDraw, ImageFont
import barcode
from barcode.writer import ImageWriter

logger = logging.getLogger(__name__)

DEFAULT_LABEL_SETTINGS = {
    'nameFontSize': 18,
    'priceFontSize': 32,
    'unitFontSize': 12,
    'barcodeFontSize': 12,
    'width': 400,
    'height': 240,
}


def _load_font(size: int, bold: bool = False):
    candidates = [
        '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf' if bold else '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf',
        'arialbd.ttf' if bold else 'arial.ttf',
    ]
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def format_price(price) -> str:
    """German price format, e.g. 1234.5 -> '1.234,50 €'"""
    amount = Decimal(price or 0).quantize(Decimal('0.01'))
    text = f"{amount:,.2f}".replace(',', 'X').replace('.', ',').replace('X', '.')
    return f"{text} €"


def barcode_symbology(barcode_value: str) -> str:
    """EAN-13 for 12/13 digit numbers, Code128 for everything else"""
    if barcode_value.isdigit() and len(barcode_value) in (12, 13):
        return 'ean13'
    return 'code128'


def _render_barcode(barcode_value: str):
    options = {
        'write_text': False,
        'module_width': 0.3,
        'module_height': 18.0,
        'quiet_zone': 2.0,
        'background': 'white',
        'foreground': 'black',
    }
    symbology = barcode_symbology(barcode_value)
    try:
        barcode_class = barcode.get_barcode_class(symbology)
        return barcode_class(barcode_value, writer=ImageWriter()).render(options)
    except Exception as e:
        if symbology == 'code128':
            raise
        # Invalid EAN check digit, print it as Code128 instead
        logger.warning(f"EAN-13 rendering failed for '{barcode_value}', using Code128: {str(e)}")
        barcode_class = barcode.get_barcode_class('code128')
        return barcode_class(barcode_value, writer=ImageWriter()).render(options)


def _draw_centered(draw, width, y, text, font):
    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    draw.text(((width - text_width) // 2, y), text, fill='black', font=font)
    return bbox[3] - bbox[1]


def generate_shelf_label(
    name: str,
    price,
    barcode_value: str,
    unit: Optional[str] = None,
    label_settings: Optional[dict] = None,
) -> bytes:
    """
    Render a shelf label and return PNG bytes.

    Layout from top to bottom: product name, price (large), unit, barcode, barcode digits.
    Font sizes and canvas size come from the store's barcode label settings.
    """
    config = {**DEFAULT_LABEL_SETTINGS, **(label_settings or {})}
    width, height = int(config['width']), int(config['height'])
    margin = 10

    max_name_length = 32
    if len(name) > max_name_length:
        name = name[:max_name_length] + '...'

    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)

    y = margin
    y += _draw_centered(draw, width, y, name, _load_font(int(config['nameFontSize']), bold=True)) + 6
    y += _draw_centered(draw, width, y, format_price(price), _load_font(int(config['priceFontSize']), bold=True)) + 6
    if unit:
        y += _draw_centered(draw, width, y, unit, _load_font(int(config['unitFontSize']))) + 6

    barcode_font = _load_font(int(config['barcodeFontSize']))
    text_height = int(config['barcodeFontSize']) + 6
    available_height = height - y - text_height - margin
    try:
        barcode_img = _render_barcode(barcode_value)
        barcode_width = width - 2 * margin
        scale = barcode_width / barcode_img.size[0]
        scaled_height = int(barcode_img.size[1] * scale)
        if scaled_height > available_height:
            scale = available_height / barcode_img.size[1]
            scaled_height = max(available_height, 1)
            barcode_width = int(barcode_img.size[0] * scale)
        barcode_img = barcode_img.resize((barcode_width, scaled_height), Image.Resampling.BILINEAR)
        img.paste(barcode_img, ((width - barcode_width) // 2, y))
        y += scaled_height + 4
    except Exception as e:
        logger.error(f"Barcode generation failed for '{barcode_value}': {str(e)}")
    _draw_centered(draw, width, y, barcode_value, barcode_font)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=False, compress_level=1)
    img.close()
    return buffer.getvalue()


def label_data_url(png_bytes: bytes) -> str:
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode('utf-8')}"
