from oftforge.core.errors import CommandFailedError, ProvisioningStepError
from oftforge.core.structures.structures import ProvisioningProgress, TransferStatus


def test_origin_addresses_are_never_overwritten():
    progress = ProvisioningProgress()

    progress.record_origin("mint-1", "store-1")
    progress.record_origin("mint-2", "store-2")

    assert progress.origin_token_address == "mint-1"
    assert progress.origin_store_address == "store-1"


def test_fresh_progress_wire_shape():
    assert ProvisioningProgress().to_plain_dict() == {
        "step1Completed": False,
        "step2Completed": {},
        "step3Completed": False,
        "step4Completed": False,
    }


def test_step_error_details_fall_back_to_cause_type():
    error = ProvisioningStepError(3, "Failed to initialize config", ProvisioningProgress(), ValueError())

    assert error.details == "ValueError"


def test_command_failure_message_includes_captured_output():
    error = CommandFailedError("npx hardhat deploy-oft", 2, stdout="", stderr="  nonce too low \n")

    assert str(error) == "Command 'npx hardhat deploy-oft' failed with code 2: nonce too low"


def test_only_pending_is_not_terminal():
    assert not TransferStatus.PENDING.is_terminal
    assert TransferStatus.DONE.is_terminal
    assert TransferStatus.FAILED.is_terminal
