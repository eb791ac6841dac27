from services.package_update.cli import main

raise SystemExit(main())
