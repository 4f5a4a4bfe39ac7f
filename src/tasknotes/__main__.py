from tasknotes.cli.main import main

raise SystemExit(main())
