from shopcrawl.main import main

raise SystemExit(main())
