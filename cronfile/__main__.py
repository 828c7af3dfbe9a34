from cronfile.cli import main

raise SystemExit(main())
