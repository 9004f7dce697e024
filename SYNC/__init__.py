"""
SYNC - 라이브러리 동기화 / 세션 / API

- service: sync(mode, limit) 오케스트레이션 (토큰 → 트랙 → feature → 구면)
- progress: 진행 상황 레코드 (auth 8% → tracks 20~55% → features 58% → embedding 84% → done)
- store: 세션별 토큰/프로필/구면 데이터 저장 (SQLAlchemy)
- router: /api/library, /api/sphere, /api/auth, /api/debug 엔드포인트

database.init_db()가 store를 import 하므로 여기서는 무거운 import를 하지 않는다.
"""
