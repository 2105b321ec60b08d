from preview_deploy.main import main

main()
