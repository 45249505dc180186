# app/services/classifier_service.py
"""
결과 스크린샷 분류

1) EvidenceClassifier: 이미지 → 원문 텍스트 (외부 서비스, 실패 가능)
2) VerdictStrategy: 원문 텍스트 → 판정 (교체 가능한 전략)
"""
import base64
import mimetypes
from typing import Iterable, Optional

from openai import OpenAI, APIError, APITimeoutError, RateLimitError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.file_security import is_remote_ref, resolve_evidence_path, validate_evidence_ref
from app.core.logger import logger
from app.models.evidence import VerificationStatus

EXTRACTION_PROMPT = """This is a screenshot of the final screen of an online match.
Transcribe every piece of visible text exactly as it appears (result banners,
placements, player names, scores). Return plain text only, no commentary."""

def encode_image_to_data_url(image_path: str) -> str:
    """로컬 이미지 파일을 data URL로 인코딩"""
    mime_type = mimetypes.guess_type(image_path)[0] or "image/jpeg"
    with open(image_path, "rb") as image_file:
        encoded = base64.b64encode(image_file.read()).decode('utf-8')
    return f"data:{mime_type};base64,{encoded}"

class EvidenceClassifier:
    """증빙 이미지 → 원문 텍스트"""

    def classify(self, evidence_ref: str) -> str:
        raise NotImplementedError

class OpenAIVisionClassifier(EvidenceClassifier):
    """OpenAI 비전 모델로 스크린샷 텍스트 추출"""

    def __init__(self, client: Optional[OpenAI] = None, model: str = None, evidence_dir: str = None):
        self.client = client or OpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.classifier_timeout
        )
        self.model = model or settings.classifier_model
        self.evidence_dir = evidence_dir or settings.evidence_dir

    @retry(
        stop=stop_after_attempt(3),  # 3번 재시도
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((APIError, APITimeoutError, RateLimitError)),
        reraise=True
    )
    def _extract_text(self, image_url: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}}
                    ]
                }
            ],
            max_tokens=500
        )
        return (response.choices[0].message.content or "").strip()

    def classify(self, evidence_ref: str) -> str:
        validate_evidence_ref(evidence_ref, self.evidence_dir)
        if is_remote_ref(evidence_ref):
            image_url = evidence_ref
        else:
            # 증빙 디렉토리 안의 이미지만 읽음
            path = resolve_evidence_path(evidence_ref, self.evidence_dir)
            try:
                image_url = encode_image_to_data_url(path)
            except OSError as e:
                raise ExternalServiceError(f"Evidence image could not be read: {e}") from e

        try:
            return self._extract_text(image_url)
        except (APIError, APITimeoutError, RateLimitError) as e:
            raise ExternalServiceError(f"Evidence classifier failed: {e}") from e

class VerdictStrategy:
    """원문 텍스트 → 승/패 판정"""

    def verdict_for(self, raw_text: Optional[str]) -> VerificationStatus:
        raise NotImplementedError

class KeywordVerdictStrategy(VerdictStrategy):
    """
    키워드 기반 판정
    - 승리 키워드를 먼저 검사하고, 없으면 패배 키워드 검사
    - 둘 다 없으면 pending (수동 검토)
    """

    def __init__(self, win_keywords: Iterable[str] = None, loss_keywords: Iterable[str] = None):
        self.win_keywords = [k.lower() for k in (win_keywords or settings.win_keywords)]
        self.loss_keywords = [k.lower() for k in (loss_keywords or settings.loss_keywords)]

    def verdict_for(self, raw_text):
        if not raw_text:
            return VerificationStatus.PENDING

        text = raw_text.lower()
        if any(keyword in text for keyword in self.win_keywords):
            return VerificationStatus.VERIFIED_WIN
        if any(keyword in text for keyword in self.loss_keywords):
            return VerificationStatus.VERIFIED_LOSS
        return VerificationStatus.PENDING

def classify_evidence(classifier: EvidenceClassifier, strategy: VerdictStrategy, evidence_ref: str):
    """
    분류기 실행 + 판정
    분류기 실패 시 (None, PENDING) 반환 → 수동 검토 대기
    """
    try:
        raw_text = classifier.classify(evidence_ref)
    except ExternalServiceError as e:
        logger.warning(f"증빙 분류 실패, pending 처리: ref={evidence_ref} ({e})")
        return None, VerificationStatus.PENDING

    verdict = strategy.verdict_for(raw_text)
    logger.info(f"증빙 판정: ref={evidence_ref} → {verdict.value}")
    return raw_text, verdict
