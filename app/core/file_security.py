# app/core/file_security.py
import os
from urllib.parse import urlparse

from app.core.exceptions import ValidationError

# 설정
MAX_EVIDENCE_SIZE = 20 * 1024 * 1024  # 20MB
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
REMOTE_SCHEMES = {"http", "https"}

def is_remote_ref(evidence_ref: str) -> bool:
    """http(s) 이미지 URL 여부"""
    parsed = urlparse(evidence_ref)
    return parsed.scheme.lower() in REMOTE_SCHEMES and bool(parsed.netloc)

def validate_file_extension(filename: str) -> None:
    """파일 확장자 검증"""
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported evidence file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

def resolve_evidence_path(evidence_ref: str, evidence_dir: str) -> str:
    """
    로컬 증빙 경로를 증빙 디렉토리 기준 절대 경로로 변환
    디렉토리 밖(절대 경로, ../, 심볼릭 링크)은 거부
    """
    if "\x00" in evidence_ref:
        raise ValidationError("Invalid evidence reference")

    base = os.path.realpath(evidence_dir)
    path = os.path.realpath(os.path.join(base, evidence_ref))
    if os.path.commonpath([base, path]) != base or path == base:
        raise ValidationError("Evidence must be an image URL or a file inside the evidence directory")

    validate_file_extension(path)
    return path

def validate_file_size(path: str) -> None:
    """파일 크기 검증 (없는 파일은 읽기 단계에서 처리)"""
    if os.path.isfile(path) and os.path.getsize(path) > MAX_EVIDENCE_SIZE:
        raise ValidationError(
            f"Evidence file is too large. Max: {MAX_EVIDENCE_SIZE // 1024 // 1024}MB"
        )

def validate_evidence_ref(evidence_ref: str, evidence_dir: str) -> None:
    """전체 증빙 참조 검증 (URL 또는 증빙 디렉토리 내 이미지)"""
    if is_remote_ref(evidence_ref):
        return
    if urlparse(evidence_ref).scheme and "://" in evidence_ref:
        raise ValidationError("Only http(s) evidence URLs are accepted")

    path = resolve_evidence_path(evidence_ref, evidence_dir)
    validate_file_size(path)
