def classify_document(filename: str, content_type: str = "", label: str = "") -> str:
    text = f"{filename or ''} {label or ''}".lower()
    mime = (content_type or "").lower()

    if "invoice" in text or "bill" in text:
        return "itemized_invoice"
    if "receipt" in text or "payment" in text:
        return "payment_receipt"
    if "discharge" in text or "admission" in text:
        return "discharge_summary"
    if "prescription" in text:
        return "prescription"
    if "lab" in text or "report" in text or "scan" in text or "ecg" in text:
        return "lab_report"
    if "aadhaar" in text or "passport" in text or "id_proof" in text or "id proof" in text:
        return "id_proof"
    if "pdf" in mime or mime.startswith("image/"):
        return "supporting_document"
    return "unknown"
