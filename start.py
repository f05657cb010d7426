#!/usr/bin/env python
"""Start the approval service."""

import logging
import os
import sys
from pathlib import Path

# Change to script directory so relative paths work correctly
script_dir = Path(__file__).parent.resolve()
os.chdir(script_dir)

# Add src to path
src_path = script_dir / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    import uvicorn

    from approval_svc.config import load_config
    from approval_svc.submissions.query import use_system_collation

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    use_system_collation()
    config, _ = load_config()
    uvicorn.run(
        "approval_svc.app:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )
