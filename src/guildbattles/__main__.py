from guildbattles.cli import main

raise SystemExit(main())
