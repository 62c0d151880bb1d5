from loadprobe.cli import main

raise SystemExit(main())
