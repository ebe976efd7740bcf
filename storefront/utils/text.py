# storefront/utils/text.py
import re

def slugify(text):
    text = str(text or "").strip().lower()
    text = re.sub(r"['\"]", "", text)
    text = text.replace("&", "-and-")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")
