"""
copyhelper: search your PDFs with a screen capture.

Package structure:
- capture/     - Region segmentation, OCR and the capture pipeline
- embeddings/  - BPE tokenizer, TorchScript encoder adapters, EmbeddingEngine
- ingestion/   - PDF parsing, line chunking, incremental indexing
- index/       - On-disk index and the in-memory snapshot handle
- query/       - Embedding ranking and the lexical fallback
- service.py   - Capture-and-search orchestration
- cli.py       - `copyhelper` command
"""

__version__ = "0.1.0"
