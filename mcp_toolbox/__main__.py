from mcp_toolbox.cli import main

raise SystemExit(main())
