"""
speechnorm - 합성 음성 라우드니스 정규화 및 PCM WAV 인코딩

Modules:
- audio.bs1770: K-weighting + 게이팅 기반 통합 라우드니스 측정
- audio.loudness_normalizer: 목표 라우드니스(-14 LKFS) 게인 적용 및 tanh 리미팅
- audio.wav_writer: mono 16bit PCM RIFF/WAVE 인코딩
- synthesis.post_processor: 측정 → 정규화 → 인코딩 파이프라인
- config / logging: YAML 설정 및 구조화 로깅
"""

__version__ = "1.0.0"
