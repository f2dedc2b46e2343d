import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.getenv("LOG_FILE", os.path.join(BASE_DIR, "attempt_engine.log"))
CATALOG_PATH = os.getenv("CATALOG_PATH", os.path.join(BASE_DIR, "catalog.json"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "0.0.0.0")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# DB 설정 (기본: 로컬 SQLite 파일)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///" + os.path.join(BASE_DIR, "attempts.db"))

# 응시 정책
# resume : 진행 중 응시가 있으면 그 응시를 그대로 돌려준다
# reject : DuplicateActiveAttempt 로 거절
ACTIVE_ATTEMPT_POLICY = os.getenv("ACTIVE_ATTEMPT_POLICY", "resume").lower()

# 리뷰 PDF 설정
PDF_PAGE_WIDTH = 595     # A4 (pt)
PDF_PAGE_HEIGHT = 842
PDF_FONT_SIZE = 10
PDF_FONT_NAME = os.getenv("PDF_FONT_NAME", "")        # 비우면 내용에 따라 자동 선택
PDF_LATIN_FONT = "helv"
PDF_CJK_FONT = os.getenv("PDF_CJK_FONT", "korea")   # 한글 글리프 포함 내장 폰트
