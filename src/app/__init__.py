"""
App layer: API 서버 (FastAPI).

역할:
- 템플릿 CRUD + 편집 세션 (autosave)
- 이미지/원본 업로드, 수신자 파일 파싱
- 인증서 일괄 생성 요청 (ZIP)
- ⚠️ 도메인 규칙 없음 (templates/core에 위임)

주의: 폴더 구분
- src/templates/ → 코드 (문서 모델, 세션, 저장소)
- templates/ (루트) → 데이터 저장소 (<template_id>/template.json)
"""
