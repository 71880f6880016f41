from cec_proxy.main import main

raise SystemExit(main())
